# tempero_pay/api/v1/webhooks/boleto.py
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tempero_pay.core.security import secrets_match
from tempero_pay.database.session import get_db
from tempero_pay.services import boleto as boleto_service
from tempero_pay.services import settings_store
from tempero_pay.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _error(code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=code, content={"error": message})


@router.post("/boleto-webhook")
async def boleto_webhook(
    request: Request,
    background: BackgroundTasks,
    x_webhook_secret: str | None = Header(default=None, alias="x-webhook-secret"),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    raw = await request.body()
    try:
        payload = json.loads(raw.decode() or "null")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON")
    if not isinstance(payload, dict):
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid JSON")

    if not secrets_match(x_webhook_secret, settings_store.boleto_webhook_secret(db)):
        logger.warning("webhook boleto recusado: segredo ausente ou inválido")
        return _error(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    provider_title_id = payload.get("provider_title_id")
    order_nsu = payload.get("order_nsu")
    try:
        out = boleto_service.apply_webhook(
            db,
            provider_title_id=str(provider_title_id) if provider_title_id else None,
            order_nsu=str(order_nsu) if order_nsu else None,
            status=payload.get("status"),
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("webhook boleto falhou (title=%s, order=%s)", provider_title_id, order_nsu)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal error")

    for snap in out.paid:
        background.add_task(notifier.order_paid, snap)

    logger.info("webhook boleto: updated=%s title_error=%s", out.updated, out.title_error)
    return {"success": True, "updated": out.updated, "title_error": out.title_error}
