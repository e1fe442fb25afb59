# tempero_pay/client/card_gateways.py
"""
Escolha do meio de pagamento com cartão a partir das configurações salvas
pelo admin.

Ordem fixa de consulta: InfinitePay, depois PagSeguro. O primeiro gateway
habilitado vence. Dentro dele:

* `gateway_type` igual a uma das integrações de redirecionamento -> checkout
  hospedado (`create-payment-link` ou `create-pagseguro-payment`);
* número de WhatsApp -> conversa pré-preenchida com o resumo do pedido;
* link de pagamento -> abre o link;
* senão -> instruções manuais.

Sem gateway habilitado cai sempre em instruções manuais genéricas.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from urllib.parse import quote

from tempero_pay.client.cart import Cart
from tempero_pay.client.customer import CustomerInfo
from tempero_pay.client.errors import RemoteCallError
from tempero_pay.client.functions import FunctionsClient
from tempero_pay.schemas.settings import CardGatewaySettings

logger = logging.getLogger(__name__)

PRIORITY = ("infinitepay", "pagseguro")
REDIRECT_PROCEDURES = {
    "infinitepay": "create-payment-link",
    "pagseguro": "create-pagseguro-payment",
}
DEFAULT_MANUAL_MESSAGE = (
    "Pagamento com cartão indisponível no momento. "
    "Entre em contato pelo WhatsApp ou e-mail da loja para finalizar seu pedido."
)


@dataclass(frozen=True)
class RedirectGateway:
    provider: str


@dataclass(frozen=True)
class WhatsAppGateway:
    provider: str
    number: str


@dataclass(frozen=True)
class LinkGateway:
    provider: str
    url: str
    instructions: str = ""


@dataclass(frozen=True)
class ManualGateway:
    provider: str | None
    instructions: str = DEFAULT_MANUAL_MESSAGE


CardGateway = RedirectGateway | WhatsAppGateway | LinkGateway | ManualGateway


@dataclass(frozen=True)
class CardCheckoutAction:
    kind: str  # redirect | whatsapp | external_link | manual
    url: str | None = None
    message: str | None = None
    order_nsu: str | None = None


def classify(provider: str, cfg: CardGatewaySettings) -> CardGateway:
    if (cfg.gateway_type or "").lower() in REDIRECT_PROCEDURES:
        return RedirectGateway(provider=cfg.gateway_type.lower())
    digits = re.sub(r"\D", "", cfg.whatsapp_number or "")
    if digits:
        return WhatsAppGateway(provider=provider, number=digits)
    if cfg.payment_link:
        return LinkGateway(provider=provider, url=cfg.payment_link, instructions=cfg.instructions)
    return ManualGateway(provider=provider, instructions=cfg.instructions or DEFAULT_MANUAL_MESSAGE)


def _brl(value: Decimal) -> str:
    return f"R$ {value:.2f}".replace(".", ",")


def order_summary(cart: Cart, customer: CustomerInfo | None = None) -> str:
    lines = ["Olá! Gostaria de finalizar meu pedido com cartão de crédito:", ""]
    for line in cart.lines:
        lines.append(f"• {line.quantity}x {line.name} - {_brl(line.price * line.quantity)}")
    lines += ["", f"Total: {_brl(Decimal(cart.total_cents()) / 100)}"]
    if customer is not None and customer.name:
        lines.append(f"Nome: {customer.name}")
    return "\n".join(lines)


def whatsapp_url(number: str, text: str) -> str:
    return f"https://wa.me/{re.sub(r'[^0-9]', '', number)}?text={quote(text)}"


class CardGatewayDispatcher:
    def __init__(self, functions: FunctionsClient, cart: Cart):
        self._functions = functions
        self._cart = cart

    async def resolve(self) -> CardGateway:
        for provider in PRIORITY:
            try:
                data = await self._functions.call(
                    "card-gateway-settings", {"action": "get_settings", "gateway": provider}
                )
            except RemoteCallError as e:
                logger.warning("configuração de %s indisponível: %s", provider, e.message)
                continue
            cfg = CardGatewaySettings.model_validate(data.get("settings") or {})
            if cfg.enabled:
                return classify(provider, cfg)
        return ManualGateway(provider=None)

    async def dispatch(
        self, customer: CustomerInfo | None = None, *, redirect_url: str | None = None
    ) -> CardCheckoutAction:
        gateway = await self.resolve()

        if isinstance(gateway, RedirectGateway):
            if customer is None:
                customer = CustomerInfo()
            body = {"items": self._cart.items_payload(), "customer": customer.validated()}
            coupon = self._cart.coupon_payload()
            if coupon:
                body["coupon"] = coupon
            if redirect_url:
                body["redirectUrl"] = redirect_url
            data = await self._functions.call(REDIRECT_PROCEDURES[gateway.provider], body)
            url = data.get("paymentUrl")
            if not url:
                raise RemoteCallError("Link de pagamento não retornado", payload=data)
            return CardCheckoutAction(kind="redirect", url=url, order_nsu=data.get("orderNsu"))

        if isinstance(gateway, WhatsAppGateway):
            url = whatsapp_url(gateway.number, order_summary(self._cart, customer))
            return CardCheckoutAction(kind="whatsapp", url=url)

        if isinstance(gateway, LinkGateway):
            return CardCheckoutAction(kind="external_link", url=gateway.url, message=gateway.instructions or None)

        return CardCheckoutAction(kind="manual", message=gateway.instructions)
