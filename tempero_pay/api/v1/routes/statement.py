# tempero_pay/api/v1/routes/statement.py
import logging
import os

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from tempero_pay.core.security import require_admin
from tempero_pay.database.session import get_db
from tempero_pay.schemas.statement import ProcessStatementRequest
from tempero_pay.services import reconciliation
from tempero_pay.services.notifications import Notifier, get_notifier
from tempero_pay.services.statement_parser import parse_statement

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_UPLOAD_BYTES = 5 * 1024 * 1024


def _decode(raw: bytes) -> str:
    # extratos de banco costumam vir em latin-1
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


@router.post("/process-bank-statement")
def process_bank_statement(
    body: ProcessStatementRequest,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _admin: dict = Depends(require_admin),
):
    outcome = reconciliation.reconcile(db, body.transactions, auto_confirm=body.auto_confirm)
    for snap in outcome.confirmed:
        background.add_task(notifier.order_paid, snap)
    return outcome.body


@router.post("/admin/statements/import")
async def import_statement(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    reconcile: bool = Form(False),
    auto_confirm: bool = Form(False),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    _admin: dict = Depends(require_admin),
):
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "Arquivo muito grande")

    ext = os.path.splitext(file.filename or "")[1]
    transactions = parse_statement(_decode(raw), ext)
    logger.info("upload %s: %d transações", file.filename, len(transactions))
    if not transactions:
        raise HTTPException(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Nenhuma transação encontrada no arquivo. Verifique o formato.",
        )

    body = {
        "success": True,
        "filename": file.filename,
        "transactions": [t.model_dump(mode="json") for t in transactions],
    }
    if reconcile:
        outcome = reconciliation.reconcile(db, transactions, auto_confirm=auto_confirm)
        for snap in outcome.confirmed:
            background.add_task(notifier.order_paid, snap)
        body["reconciliation"] = outcome.body
    return body
