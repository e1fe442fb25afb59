# tempero_pay/services/boleto.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tempero_pay.models.order import Order
from tempero_pay.models.payment_title import PaymentTitle
from tempero_pay.schemas.settings import BoletoSettings
from tempero_pay.services import orders as order_service
from tempero_pay.services.orders import OrderSnapshot

logger = logging.getLogger(__name__)

TITLE_STATUSES = ("issued", "pending", "paid", "canceled", "expired")
WEBHOOK_SOURCE = "boleto_webhook"


def due_date(days_to_expire: int, today: date | None = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return (today + timedelta(days=days_to_expire)).isoformat()


def boleto_data(cfg: BoletoSettings) -> dict:
    return {
        "bankCode": cfg.bank_code,
        "bankName": cfg.bank_name,
        "agency": cfg.agency,
        "account": cfg.account,
        "accountType": cfg.account_type,
        "beneficiaryName": cfg.beneficiary_name,
        "beneficiaryDocument": cfg.beneficiary_document,
        "instructions": cfg.instructions,
    }


def normalize_status(raw: str | None) -> str:
    value = (raw or "paid").strip().lower()
    if value == "cancelled":
        return "canceled"
    return value


# -------------------- webhook --------------------
@dataclass
class WebhookOutcome:
    updated: bool = False
    title_error: str | None = None
    paid: list[OrderSnapshot] = field(default_factory=list)


def _set_title_status(db: Session, where, status: str, now: datetime) -> int:
    """Atualiza títulos; `paid_at` só é gravado na primeira transição para paid."""
    if status == "paid":
        stmt = (
            update(PaymentTitle)
            .where(where, PaymentTitle.status != "paid")
            .values(status="paid", paid_at=now)
        )
    else:
        # título pago não volta atrás
        stmt = (
            update(PaymentTitle)
            .where(where, PaymentTitle.status != "paid", PaymentTitle.status != status)
            .values(status=status)
        )
    return db.execute(stmt.execution_options(synchronize_session="fetch")).rowcount


def apply_webhook(
    db: Session,
    *,
    provider_title_id: str | None,
    order_nsu: str | None,
    status: str | None,
) -> WebhookOutcome:
    """Aplica o status recebido ao título e/ou pedido. Não faz commit."""
    status = normalize_status(status)
    out = WebhookOutcome()
    if status not in TITLE_STATUSES:
        out.title_error = f"Status inválido: {status}"
        return out

    now = datetime.now(timezone.utc)
    orders_to_settle: list[Order] = []

    if provider_title_id:
        title = db.scalar(select(PaymentTitle).where(PaymentTitle.provider_title_id == provider_title_id))
        if title is None:
            out.title_error = "Título não encontrado"
        else:
            if _set_title_status(db, PaymentTitle.provider_title_id == provider_title_id, status, now):
                out.updated = True
            order = db.get(Order, title.order_id)
            if order is not None:
                orders_to_settle.append(order)

    if order_nsu:
        order = order_service.get_order_by_nsu(db, order_nsu)
        if order is None:
            logger.warning("webhook boleto: pedido %s não encontrado", order_nsu)
        else:
            if status == "paid" and _set_title_status(db, PaymentTitle.order_id == order.id, "paid", now):
                out.updated = True
            if all(o.id != order.id for o in orders_to_settle):
                orders_to_settle.append(order)

    for order in orders_to_settle:
        if status == "paid":
            if order_service.mark_paid(
                db, order.id, paid_amount=order.total_amount, mode="webhook", source=WEBHOOK_SOURCE
            ):
                out.updated = True
                db.refresh(order)
                order_service.claim_paid_notification(db, order.id)
                out.paid.append(order_service.snapshot(order))
        elif status in ("canceled", "expired"):
            if order_service.mark_cancelled(db, order.id, source=WEBHOOK_SOURCE):
                out.updated = True

    order_service.record_audit(
        db,
        "order",
        orders_to_settle[0].id if orders_to_settle else 0,
        f"webhook_{status}",
        WEBHOOK_SOURCE,
        {"provider_title_id": provider_title_id, "order_nsu": order_nsu, "status": status},
    )
    return out
