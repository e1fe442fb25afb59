# tempero_pay/services/orders.py
from __future__ import annotations

import hashlib
import json
import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tempero_pay.core.errors import NotFoundError, ServiceError
from tempero_pay.models.audit_log import AuditLog
from tempero_pay.models.order import AWAITING_STATUSES, Order, OrderStatus
from tempero_pay.schemas.checkout import CartItem, CouponRef, Customer
from tempero_pay.services import coupons as coupon_service

logger = logging.getLogger(__name__)

MAX_TOTAL_CENTS = 100_000_000
_ALPHABET = string.ascii_lowercase + string.digits


# -------------------- identificadores --------------------
def new_order_nsu(prefix: str) -> str:
    """`<PREFIXO>_<epoch ms>_<sufixo aleatório>`, ex.: PIX_1718031234567_k3f9a2."""
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


def tx_id_from_nsu(order_nsu: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "", order_nsu)[:25]


# -------------------- valores --------------------
def to_cents(reais: Decimal | float | int) -> int:
    return int((Decimal(str(reais)) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_reais(cents: int | None) -> float:
    return round((cents or 0) / 100, 2)


def cart_total_cents(items: list[CartItem]) -> int:
    return sum(to_cents(Decimal(str(it.price)) * it.quantity) for it in items)


@dataclass
class PricedCart:
    subtotal: int
    discount: int = 0
    coupon_code: str | None = None
    coupon: Any = None

    @property
    def total(self) -> int:
        return max(0, self.subtotal - self.discount)


def price_cart(db: Session, items: list[CartItem], coupon: CouponRef | None) -> PricedCart:
    """
    Calcula o total em centavos. O cupom é revalidado aqui; o desconto
    enviado pelo navegador não é usado.
    """
    priced = PricedCart(subtotal=cart_total_cents(items))
    if coupon and coupon.code:
        check = coupon_service.validate_coupon(db, coupon.code, Decimal(priced.subtotal) / 100)
        if not check.valid:
            raise ServiceError(check.error or "Cupom inválido")
        priced.discount = to_cents(check.discount)
        priced.coupon_code = check.coupon.code
        priced.coupon = check.coupon

    if priced.total <= 0 or priced.total > MAX_TOTAL_CENTS:
        logger.warning("total inválido: %s centavos", priced.total)
        raise ServiceError("Valor do pedido inválido")
    return priced


# -------------------- criação --------------------
def create_order(
    db: Session,
    *,
    prefix: str,
    items: list[CartItem],
    customer: Customer,
    priced: PricedCart,
    status: str,
    payment_method: str,
    order_nsu: str | None = None,
    **extra: Any,
) -> Order:
    order = Order(
        order_nsu=order_nsu or new_order_nsu(prefix),
        status=status,
        payment_method=payment_method,
        total_amount=priced.total,
        discount_amount=priced.discount,
        coupon_code=priced.coupon_code,
        customer_name=customer.name[:100],
        customer_email=str(customer.email)[:255],
        customer_phone=(customer.phone or None),
        customer_document=(customer.document or None),
        items=[it.model_dump(exclude_none=True) for it in items],
        **extra,
    )
    db.add(order)
    if priced.coupon is not None:
        coupon_service.redeem(db, priced.coupon)
    db.flush()
    record_audit(db, "order", order.id, "created", payment_method, {"order_nsu": order.order_nsu, "total": order.total_amount})
    return order


def get_order_by_nsu(db: Session, order_nsu: str) -> Order | None:
    return db.scalar(select(Order).where(Order.order_nsu == order_nsu))


def require_order(db: Session, order_nsu: str) -> Order:
    order = get_order_by_nsu(db, order_nsu)
    if order is None:
        raise NotFoundError("Order not found")
    return order


# -------------------- transições --------------------
def record_audit(db: Session, entity: str, entity_id: int, event: str, source: str | None, payload: Any) -> None:
    raw = json.dumps(payload, sort_keys=True, default=str).encode()
    db.add(
        AuditLog(
            entity=entity,
            entity_id=entity_id,
            event=event,
            source=source,
            payload_hash=hashlib.sha256(raw).hexdigest(),
        )
    )


def mark_paid(
    db: Session,
    order_id: int,
    *,
    paid_amount: int | None,
    mode: str,
    source: str,
    **extra: Any,
) -> bool:
    """
    Avança o pedido para `paid` somente se ainda estiver aguardando pagamento.
    Retorna True quando esta chamada fez a transição. Não faz commit.
    """
    now = datetime.now(timezone.utc)
    values = {
        "status": OrderStatus.PAID,
        "confirmation_mode": mode,
        "confirmation_source": source,
        "paid_at": now,
        "updated_at": now,
        **extra,
    }
    if paid_amount is not None:
        values["paid_amount"] = paid_amount

    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(AWAITING_STATUSES))
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )
    changed = result.rowcount == 1
    if changed:
        record_audit(db, "order", order_id, "paid", source, {"paid_amount": paid_amount, "mode": mode})
        logger.info("pedido %s marcado como pago (%s)", order_id, source)
    else:
        logger.info("pedido %s já não aguardava pagamento; sinal de pago ignorado", order_id)
    return changed


def mark_cancelled(db: Session, order_id: int, *, source: str) -> bool:
    result = db.execute(
        update(Order)
        .where(Order.id == order_id, Order.status.in_(AWAITING_STATUSES))
        .values(status=OrderStatus.CANCELLED, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session="fetch")
    )
    changed = result.rowcount == 1
    if changed:
        record_audit(db, "order", order_id, "cancelled", source, {"order_id": order_id})
    return changed


PAID_NOTIFIED = "paid_notified"


def claim_paid_notification(db: Session, order_id: int) -> bool:
    """
    Registra que o aviso de pagamento do pedido foi disparado.
    Retorna False se outro caminho (webhook, conciliação, cliente) já disparou.
    """
    exists = db.scalar(
        select(AuditLog.id).where(
            AuditLog.entity == "order", AuditLog.entity_id == order_id, AuditLog.event == PAID_NOTIFIED
        )
    )
    if exists is not None:
        return False
    record_audit(db, "order", order_id, PAID_NOTIFIED, None, {"order_id": order_id})
    return True


# -------------------- representação --------------------
@dataclass(frozen=True)
class OrderSnapshot:
    """Cópia desacoplada da sessão, usada pelas notificações em background."""

    order_nsu: str
    customer_name: str
    customer_email: str
    customer_phone: str | None
    total_amount: int
    payment_method: str | None
    items: list = field(default_factory=list)


def snapshot(order: Order) -> OrderSnapshot:
    return OrderSnapshot(
        order_nsu=order.order_nsu,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        total_amount=order.total_amount,
        payment_method=order.payment_method,
        items=list(order.items or []),
    )


def order_public(order: Order) -> dict:
    return {
        "id": order.id,
        "orderNsu": order.order_nsu,
        "status": order.status,
        "totalAmount": order.total_amount,
        "paidAmount": order.paid_amount,
        "paymentMethod": order.payment_method,
        "installments": order.installments,
        "receiptUrl": order.receipt_url,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
    }
