# tempero_pay/api/v1/routes/admin_settings.py
from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from tempero_pay.core.security import require_admin
from tempero_pay.database.session import get_db
from tempero_pay.schemas.settings import BankConnectionIn
from tempero_pay.services import settings_store

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


def _editable(key: str) -> str:
    if key not in settings_store.EDITABLE_KEYS:
        raise HTTPException(status.HTTP_404_NOT_FOUND, f"Configuração desconhecida: {key}")
    return key


# -------------------- bancos --------------------
@router.get("/banks")
def list_banks():
    return {"banks": list(settings_store.SUPPORTED_BANKS)}


@router.get("/bank-connections")
def list_bank_connections(db: Session = Depends(get_db)):
    conns = settings_store.list_connections(db)
    active = settings_store.active_connection(db)
    return {
        "connections": {k: settings_store.connection_public(v) for k, v in conns.items()},
        "active": active.bank_id if active else None,
    }


@router.put("/bank-connections/{bank_id}")
def save_bank_connection(bank_id: str, body: BankConnectionIn, db: Session = Depends(get_db)):
    conn = settings_store.save_connection(db, bank_id, body)
    return {"success": True, "connection": settings_store.connection_public(conn)}


@router.post("/bank-connections/{bank_id}/toggle")
def toggle_bank_connection(bank_id: str, db: Session = Depends(get_db)):
    conn = settings_store.toggle_connection(db, bank_id)
    return {"success": True, "connection": settings_store.connection_public(conn)}


@router.post("/bank-connections/{bank_id}/test")
def test_bank_connection(bank_id: str, db: Session = Depends(get_db)):
    conn = settings_store.test_connection(db, bank_id)
    if conn.status != "connected":
        return {
            "success": False,
            "error": "Configure a API Key e o Secret para testar a conexão",
            "connection": settings_store.connection_public(conn),
        }
    return {"success": True, "connection": settings_store.connection_public(conn)}


# -------------------- blobs de configuração --------------------
@router.get("/settings/{key}")
def get_setting(key: str, db: Session = Depends(get_db)):
    return {"key": key, "value": settings_store.get_value(db, _editable(key), {})}


@router.put("/settings/{key}")
def put_setting(key: str, value: dict = Body(...), db: Session = Depends(get_db)):
    settings_store.put_value(db, _editable(key), value)
    db.commit()
    return {"success": True, "key": key, "value": value}
