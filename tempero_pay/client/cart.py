from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP


@dataclass
class CartLine:
    id: int | str
    name: str
    price: Decimal  # reais
    quantity: int = 1
    image: str | None = None

    def as_payload(self) -> dict:
        data = {"id": self.id, "name": self.name, "price": float(self.price), "quantity": self.quantity}
        if self.image:
            data["image"] = self.image
        return data


@dataclass
class Cart:
    """Carrinho da sessão de compra; vive enquanto a loja estiver aberta."""

    lines: list[CartLine] = field(default_factory=list)
    coupon_code: str | None = None

    def add(self, id: int | str, name: str, price, quantity: int = 1, image: str | None = None) -> None:
        for line in self.lines:
            if line.id == id:
                line.quantity += quantity
                return
        self.lines.append(CartLine(id=id, name=name, price=Decimal(str(price)), quantity=quantity, image=image))

    def remove(self, id: int | str) -> None:
        self.lines = [line for line in self.lines if line.id != id]

    def clear(self) -> None:
        self.lines.clear()
        self.coupon_code = None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def total_cents(self) -> int:
        total = sum((line.price * line.quantity for line in self.lines), Decimal(0))
        return int((total * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def items_payload(self) -> list[dict]:
        return [line.as_payload() for line in self.lines]

    def coupon_payload(self) -> dict | None:
        return {"code": self.coupon_code} if self.coupon_code else None
