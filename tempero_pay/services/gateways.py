# tempero_pay/services/gateways.py
"""Clientes HTTP dos provedores de pagamento (InfinitePay, PagSeguro, Asaas)."""
from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from tempero_pay.core.config import settings
from tempero_pay.core.errors import GatewayError, NotConfiguredError
from tempero_pay.schemas.checkout import CartItem, Customer
from tempero_pay.services.orders import to_cents

logger = logging.getLogger(__name__)

PAGSEGURO_URLS = {
    "production": "https://api.pagseguro.com/checkouts",
    "sandbox": "https://sandbox.api.pagseguro.com/checkouts",
}
ASAAS_URLS = {
    "production": "https://api.asaas.com/api/v3",
    "sandbox": "https://sandbox.asaas.com/api/v3",
}


def _digits(value: str | None) -> str:
    return re.sub(r"\D", "", value or "")


def _json(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"raw": resp.text}


def provider_error_message(data: Any, fallback: str) -> str:
    """Mensagem do provedor: `error_messages[0].description`, `message`, `error`, depois o fallback."""
    if isinstance(data, dict):
        msgs = data.get("error_messages") or data.get("errors")
        if isinstance(msgs, list) and msgs and isinstance(msgs[0], dict):
            desc = msgs[0].get("description") or msgs[0].get("message")
            if desc:
                return str(desc)
        for key in ("message", "error"):
            if isinstance(data.get(key), str) and data[key]:
                return data[key]
    return fallback


class GatewayClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float = 10):
        self._transport = transport
        self._timeout = timeout

    def _client(self, **kw) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport, **kw)

    # -------------------- InfinitePay --------------------
    @staticmethod
    def infinitepay_configured() -> bool:
        return bool(settings.INFINITEPAY_HANDLE)

    async def create_infinitepay_link(
        self, *, order_nsu: str, items: list[CartItem], customer: Customer | None, redirect_url: str
    ) -> str:
        if not self.infinitepay_configured():
            raise NotConfiguredError("InfinitePay não configurado")

        body: dict[str, Any] = {
            "handle": settings.INFINITEPAY_HANDLE,
            "redirect_url": redirect_url,
            "webhook_url": f"{settings.PUBLIC_API_URL}/infinitepay-webhook",
            "order_nsu": order_nsu,
            "items": [
                {"quantity": it.quantity, "price": to_cents(it.price), "description": it.name} for it in items
            ],
        }
        if customer is not None:
            phone = _digits(customer.phone)
            body["customer"] = {
                "name": customer.name,
                "email": str(customer.email),
                "phone_number": f"+55{phone}" if phone else "",
            }

        try:
            async with self._client() as client:
                resp = await client.post(settings.INFINITEPAY_API_URL, json=body)
        except httpx.HTTPError as e:
            logger.error("InfinitePay indisponível: %s", e)
            raise GatewayError("Failed to create payment link")

        data = _json(resp)
        if resp.is_error or not isinstance(data, dict) or not data.get("url"):
            logger.error("InfinitePay erro %s: %s", resp.status_code, data)
            raise GatewayError(provider_error_message(data, "Failed to create payment link"), details=data)
        return data["url"]

    # -------------------- PagSeguro --------------------
    @staticmethod
    def pagseguro_configured() -> bool:
        return bool(settings.PAGSEGURO_EMAIL and settings.PAGSEGURO_TOKEN)

    async def create_pagseguro_checkout(
        self, *, order_nsu: str, items: list[CartItem], customer: Customer, redirect_url: str
    ) -> str:
        if not self.pagseguro_configured():
            raise NotConfiguredError("PagSeguro não configurado")

        phone = _digits(customer.phone)
        payload = {
            "reference_id": order_nsu,
            "customer": {
                "name": customer.name,
                "email": str(customer.email),
                "tax_id": _digits(customer.document),
                "phones": [{"country": "55", "area": phone[:2], "number": phone[2:], "type": "MOBILE"}] if phone else [],
            },
            "items": [
                {
                    "reference_id": f"item_{i}",
                    "name": it.name[:100],
                    "quantity": it.quantity,
                    "unit_amount": to_cents(it.price),
                }
                for i, it in enumerate(items, start=1)
            ],
            "notification_urls": [f"{settings.PUBLIC_API_URL}/pagseguro-webhook"],
            "redirect_url": redirect_url,
            "payment_methods": [{"type": "CREDIT_CARD"}, {"type": "DEBIT_CARD"}],
            "payment_methods_configs": [
                {"type": "CREDIT_CARD", "config_options": [{"option": "INSTALLMENTS_LIMIT", "value": "12"}]}
            ],
        }
        url = PAGSEGURO_URLS.get(settings.PAGSEGURO_ENV, PAGSEGURO_URLS["production"])
        headers = {"Authorization": f"Bearer {settings.PAGSEGURO_TOKEN}", "x-api-version": "4.0"}

        try:
            async with self._client() as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("PagSeguro indisponível: %s", e)
            raise GatewayError("Erro ao criar pagamento")

        data = _json(resp)
        if resp.is_error:
            logger.error("PagSeguro erro %s: %s", resp.status_code, data)
            raise GatewayError(provider_error_message(data, "Erro ao criar pagamento"), details=data)

        links = data.get("links") if isinstance(data, dict) else None
        pay = next((l.get("href") for l in links or [] if l.get("rel") == "PAY"), None)
        if not pay:
            raise GatewayError("Link de pagamento não retornado", details=data)
        return pay

    # -------------------- Asaas --------------------
    @staticmethod
    def asaas_base_url(environment: str | None = None) -> str:
        env = (settings.ASAAS_ENV or environment or "sandbox").strip().lower()
        return ASAAS_URLS["production"] if env == "production" else ASAAS_URLS["sandbox"]

    async def create_asaas_boleto(
        self,
        *,
        access_token: str,
        environment: str | None,
        customer: Customer,
        value_cents: int,
        due_date: str,
        description: str,
        external_reference: str,
    ) -> dict:
        """Busca ou cria o cliente e emite a cobrança BOLETO; devolve o JSON do pagamento."""
        token = (settings.ASAAS_ACCESS_TOKEN or access_token or "").strip()
        if not token:
            raise NotConfiguredError("ASAAS_ACCESS_TOKEN não configurado")

        headers = {"access_token": token}
        email = str(customer.email)
        try:
            async with self._client(base_url=self.asaas_base_url(environment), headers=headers) as client:
                found = _json(await client.get("/customers", params={"email": email}))
                match = next(
                    (c for c in (found.get("data") or []) if isinstance(c, dict) and c.get("email") == email),
                    None,
                ) if isinstance(found, dict) else None

                if match and match.get("id"):
                    customer_id = str(match["id"])
                else:
                    resp = await client.post(
                        "/customers",
                        json={
                            "name": customer.name,
                            "email": email,
                            "cpfCnpj": _digits(customer.document) or None,
                            "mobilePhone": customer.phone or None,
                        },
                    )
                    created = _json(resp)
                    if resp.is_error or not created.get("id"):
                        raise GatewayError(
                            provider_error_message(created, "Failed to create Asaas customer"), details=created
                        )
                    customer_id = str(created["id"])

                resp = await client.post(
                    "/payments",
                    json={
                        "customer": customer_id,
                        "billingType": "BOLETO",
                        "value": round(value_cents / 100, 2),
                        "dueDate": due_date,
                        "description": description,
                        "externalReference": external_reference,
                        "postalService": False,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("Asaas indisponível: %s", e)
            raise GatewayError("Asaas payment error")

        payment = _json(resp)
        if resp.is_error or not isinstance(payment, dict) or not payment.get("id"):
            logger.error("Asaas erro %s: %s", resp.status_code, payment)
            raise GatewayError(provider_error_message(payment, "Failed to create Asaas payment"), details=payment)
        return payment


_gateway_client = GatewayClient()


def get_gateway_client() -> GatewayClient:
    return _gateway_client
