# tempero_pay/api/v1/webhooks/infinitepay.py
import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from tempero_pay.core.security import secrets_match
from tempero_pay.database.session import get_db
from tempero_pay.services import orders as order_service
from tempero_pay.services import settings_store
from tempero_pay.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

WEBHOOK_SOURCE = "infinitepay_webhook"


def _reply(code: int, success: bool, message: str | None) -> JSONResponse:
    return JSONResponse(status_code=code, content={"success": success, "message": message})


def _int_or_none(value) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


@router.post("/infinitepay-webhook")
async def infinitepay_webhook(
    request: Request,
    background: BackgroundTasks,
    x_webhook_secret: str | None = Header(default=None, alias="x-webhook-secret"),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    try:
        payload = json.loads((await request.body()).decode() or "null")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return _reply(status.HTTP_400_BAD_REQUEST, False, "Invalid JSON")
    if not isinstance(payload, dict):
        return _reply(status.HTTP_400_BAD_REQUEST, False, "Invalid JSON")

    secret = settings_store.load_card_gateway(db, "infinitepay").webhook_secret
    if secret and not secrets_match(x_webhook_secret, secret):
        logger.warning("webhook InfinitePay recusado: segredo inválido")
        return _reply(status.HTTP_401_UNAUTHORIZED, False, "Unauthorized")

    order_nsu = payload.get("order_nsu")
    if not order_nsu:
        logger.error("webhook InfinitePay sem order_nsu")
        return _reply(status.HTTP_400_BAD_REQUEST, False, "Missing order_nsu")

    order = order_service.get_order_by_nsu(db, str(order_nsu))
    if order is None:
        return _reply(status.HTTP_400_BAD_REQUEST, False, "Order not found")

    extra = {
        "transaction_nsu": payload.get("transaction_nsu"),
        "invoice_ref": payload.get("invoice_slug"),
        "receipt_url": payload.get("receipt_url"),
        "installments": _int_or_none(payload.get("installments")),
    }
    if payload.get("capture_method"):
        extra["payment_method"] = payload["capture_method"]

    changed = order_service.mark_paid(
        db,
        order.id,
        paid_amount=_int_or_none(payload.get("paid_amount")),
        mode="webhook",
        source=WEBHOOK_SOURCE,
        **{k: v for k, v in extra.items() if v is not None},
    )
    notify = changed and order_service.claim_paid_notification(db, order.id)
    db.commit()

    if notify:
        db.refresh(order)
        background.add_task(notifier.order_paid, order_service.snapshot(order))
    logger.info("webhook InfinitePay %s: changed=%s", order.order_nsu, changed)
    return _reply(status.HTTP_200_OK, True, None)
