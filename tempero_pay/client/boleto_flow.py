# tempero_pay/client/boleto_flow.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from tempero_pay.client.cart import Cart
from tempero_pay.client.customer import CustomerInfo
from tempero_pay.client.errors import CheckoutValidationError
from tempero_pay.client.functions import FunctionsClient

logger = logging.getLogger(__name__)

THANK_YOU = (
    "Obrigado pela compra! Assim que o pagamento do boleto for compensado "
    "você receberá a confirmação por e-mail."
)
REGISTERED_MODES = ("registered", "asaas")


@dataclass(frozen=True)
class BoletoInstructions:
    order_nsu: str
    total_amount: Decimal  # reais
    due_date: str
    bank_data: dict = field(default_factory=dict)
    boleto_url: str | None = None
    digitable_line: str | None = None
    barcode: str | None = None
    provider_title_id: str | None = None

    @property
    def registered(self) -> bool:
        return self.provider_title_id is not None


class BoletoCheckout:
    """
    Boleto não é acompanhado por consulta: a confirmação chega só pelo
    webhook do emissor. `mark_done()` apenas limpa o carrinho.
    """

    def __init__(self, functions: FunctionsClient, cart: Cart, *, mode: str = "manual"):
        self._functions = functions
        self._cart = cart
        self.mode = (mode or "manual").lower()
        self.instructions: BoletoInstructions | None = None

    async def submit(self, customer: CustomerInfo, *, description: str | None = None) -> BoletoInstructions:
        if self._cart.is_empty:
            raise CheckoutValidationError("Seu carrinho está vazio")

        body = {"items": self._cart.items_payload(), "customer": customer.validated(require_tax_id=True)}
        coupon = self._cart.coupon_payload()
        if coupon:
            body["coupon"] = coupon

        if self.mode in REGISTERED_MODES:
            if description:
                body["description"] = description
            data = await self._functions.call("create-asaas-boleto", body)
            self.instructions = BoletoInstructions(
                order_nsu=data["orderNsu"],
                total_amount=Decimal(str(data["totalAmount"])),
                due_date=data["dueDate"],
                boleto_url=data.get("boletoUrl"),
                digitable_line=data.get("digitableLine"),
                barcode=data.get("barcode"),
                provider_title_id=data.get("providerTitleId"),
            )
        else:
            data = await self._functions.call("create-boleto-order", body)
            self.instructions = BoletoInstructions(
                order_nsu=data["orderNsu"],
                total_amount=Decimal(str(data["totalAmount"])),
                due_date=data["dueDate"],
                bank_data=data.get("boletoData") or {},
            )

        logger.info("boleto %s emitido (modo %s)", self.instructions.order_nsu, self.mode)
        return self.instructions

    def mark_done(self) -> str:
        self._cart.clear()
        return THANK_YOU
