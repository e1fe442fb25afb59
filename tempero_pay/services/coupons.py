# tempero_pay/services/coupons.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tempero_pay.core.errors import NotFoundError, ServiceError
from tempero_pay.models.coupon import DiscountCoupon
from tempero_pay.schemas.coupon import CouponIn

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")


def normalize_code(code: str | None) -> str:
    return re.sub(r"[^A-Z0-9]", "", (code or "").upper())


def _aware(dt: datetime | None) -> datetime | None:
    # SQLite devolve datetime sem fuso
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _brl(value: Decimal) -> str:
    return f"R$ {value.quantize(_CENT):.2f}".replace(".", ",")


@dataclass
class CouponCheck:
    valid: bool
    error: str | None = None
    coupon: DiscountCoupon | None = None
    discount: Decimal = Decimal("0.00")  # reais

    def as_response(self) -> dict:
        if not self.valid:
            return {"valid": False, "error": self.error}
        c = self.coupon
        return {
            "valid": True,
            "coupon": {
                "code": c.code,
                "description": c.description,
                "discount_type": c.discount_type,
                "discount_value": float(c.discount_value),
                "discountAmount": float(self.discount),
            },
        }


def compute_discount(coupon: DiscountCoupon, order_total: Decimal) -> Decimal:
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == "percentage":
        discount = order_total * value / Decimal(100)
    else:
        discount = min(value, order_total)
    return discount.quantize(_CENT, rounding=ROUND_HALF_UP)


def validate_coupon(db: Session, code: str | None, order_total: Decimal, now: datetime | None = None) -> CouponCheck:
    normalized = normalize_code(code)
    coupon = None
    if normalized:
        coupon = db.scalar(
            select(DiscountCoupon).where(DiscountCoupon.code == normalized, DiscountCoupon.is_active.is_(True))
        )
    if coupon is None:
        return CouponCheck(False, "Cupom não encontrado ou inativo")

    now = now or datetime.now(timezone.utc)
    valid_from = _aware(coupon.valid_from)
    valid_until = _aware(coupon.valid_until)
    if valid_from and valid_from > now:
        return CouponCheck(False, "Cupom ainda não está ativo")
    if valid_until and valid_until < now:
        return CouponCheck(False, "Cupom expirado")
    if coupon.max_uses and coupon.current_uses >= coupon.max_uses:
        return CouponCheck(False, "Cupom atingiu o limite de usos")

    min_value = Decimal(str(coupon.min_order_value or 0))
    if min_value and order_total < min_value:
        return CouponCheck(False, f"Pedido mínimo de {_brl(min_value)}")

    discount = compute_discount(coupon, order_total)
    logger.info("cupom %s validado: %s de desconto", coupon.code, discount)
    return CouponCheck(True, coupon=coupon, discount=discount)


def redeem(db: Session, coupon: DiscountCoupon) -> None:
    coupon.current_uses = (coupon.current_uses or 0) + 1
    db.add(coupon)


# -------------------- administração --------------------
def create_coupon(db: Session, data: CouponIn) -> DiscountCoupon:
    code = normalize_code(data.code)[:20]
    if not code or not data.discount_value:
        raise ServiceError("Código e valor do desconto são obrigatórios")
    if len(code) < 3:
        raise ServiceError("Código deve ter pelo menos 3 caracteres")

    coupon = DiscountCoupon(
        code=code,
        description=data.description,
        discount_type=data.discount_type or "percentage",
        discount_value=data.discount_value,
        min_order_value=data.min_order_value or 0,
        max_uses=data.max_uses,
        current_uses=0,
        valid_from=data.valid_from or datetime.now(timezone.utc),
        valid_until=data.valid_until,
        is_active=data.is_active is not False,
    )
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ServiceError("Já existe um cupom com este código")
    db.refresh(coupon)
    logger.info("cupom criado: %s", coupon.code)
    return coupon


def update_coupon(db: Session, coupon_id: int, data: CouponIn) -> DiscountCoupon:
    coupon = db.get(DiscountCoupon, coupon_id)
    if coupon is None:
        raise NotFoundError("Cupom não encontrado")
    # só os campos enviados; o código não muda
    for field, value in data.model_dump(exclude_unset=True, exclude={"code", "valid_from"}).items():
        setattr(coupon, field, value)
    db.commit()
    db.refresh(coupon)
    return coupon


def delete_coupon(db: Session, coupon_id: int) -> None:
    coupon = db.get(DiscountCoupon, coupon_id)
    if coupon is None:
        raise NotFoundError("Cupom não encontrado")
    db.delete(coupon)
    db.commit()


def list_coupons(db: Session) -> list[DiscountCoupon]:
    return list(db.scalars(select(DiscountCoupon).order_by(DiscountCoupon.created_at.desc(), DiscountCoupon.id.desc())))


def coupon_to_dict(c: DiscountCoupon) -> dict:
    return {
        "id": c.id,
        "code": c.code,
        "description": c.description,
        "discount_type": c.discount_type,
        "discount_value": float(c.discount_value),
        "min_order_value": float(c.min_order_value or 0),
        "max_uses": c.max_uses,
        "current_uses": c.current_uses,
        "valid_from": c.valid_from.isoformat() if c.valid_from else None,
        "valid_until": c.valid_until.isoformat() if c.valid_until else None,
        "is_active": c.is_active,
    }
