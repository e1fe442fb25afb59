# tempero_pay/services/notifications.py
"""
Avisos de pedido: e-mail (Resend) e WhatsApp (Z-API).

Tudo aqui é melhor esforço: falhas são logadas e nunca sobem para quem
chamou, porque rodam em background depois da resposta HTTP.
"""
from __future__ import annotations

import html
import logging
from decimal import Decimal

import httpx

from tempero_pay.core.config import settings
from tempero_pay.services.orders import OrderSnapshot

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
ZAPI_URL = "https://api.z-api.io/instances/{instance}/token/{token}/send-text"

PAYMENT_LABELS = {
    "pix": "PIX",
    "credit_card": "Cartão de Crédito",
    "boleto": "Boleto",
}


def brl(reais: Decimal | float) -> str:
    return f"R$ {Decimal(str(reais)):.2f}".replace(".", ",")


def _cents_brl(cents: int) -> str:
    return brl(Decimal(cents) / 100)


def _items_lines(items: list) -> str:
    lines = []
    for it in items:
        price = Decimal(str(it.get("price", 0))) * int(it.get("quantity", 1))
        lines.append(f"  • {it.get('quantity', 1)}x {it.get('name', '')} - {brl(price)}")
    return "\n".join(lines)


def new_order_message(order: OrderSnapshot) -> str:
    method = PAYMENT_LABELS.get(order.payment_method or "", order.payment_method or "Pendente")
    return (
        "🛒 *NOVO PEDIDO RECEBIDO!*\n\n"
        f"📋 *NSU:* {order.order_nsu}\n"
        f"👤 *Cliente:* {order.customer_name or 'Não informado'}\n"
        f"📱 *Telefone:* {order.customer_phone or 'Não informado'}\n"
        f"💳 *Pagamento:* {method}\n\n"
        f"*Itens:*\n{_items_lines(order.items)}\n\n"
        f"💰 *Total:* {_cents_brl(order.total_amount)}\n\n"
        "⏳ Aguardando confirmação de pagamento."
    )


def paid_order_message(order: OrderSnapshot) -> str:
    return (
        "✅ *PAGAMENTO CONFIRMADO!*\n\n"
        f"📋 *NSU:* {order.order_nsu}\n"
        f"👤 *Cliente:* {order.customer_name}\n"
        f"💰 *Valor:* {_cents_brl(order.total_amount)}"
    )


def paid_email_html(order: OrderSnapshot) -> str:
    rows = "".join(
        "<tr>"
        f"<td style=\"padding: 12px; border-bottom: 1px solid #eee;\">{html.escape(str(it.get('name', '')))}</td>"
        f"<td style=\"padding: 12px; border-bottom: 1px solid #eee; text-align: center;\">{int(it.get('quantity', 1))}</td>"
        "<td style=\"padding: 12px; border-bottom: 1px solid #eee; text-align: right;\">"
        f"{brl(Decimal(str(it.get('price', 0))) * int(it.get('quantity', 1)))}</td>"
        "</tr>"
        for it in order.items
    )
    return (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\"></head><body>"
        "<h1>🎉 Pagamento Confirmado!</h1>"
        f"<p>Olá <strong>{html.escape(order.customer_name)}</strong>,</p>"
        f"<p>Recebemos o pagamento do pedido <strong>#{html.escape(order.order_nsu)}</strong>.</p>"
        f"<table style=\"width: 100%; border-collapse: collapse;\">{rows}</table>"
        f"<p><strong>Total: {_cents_brl(order.total_amount)}</strong></p>"
        f"<p>{html.escape(settings.STORE_NAME)}</p>"
        "</body></html>"
    )


class Notifier:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float | None = None):
        self._transport = transport
        self._timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    # -------------------- canais --------------------
    async def send_whatsapp(self, phone: str, message: str) -> bool:
        if not (settings.ZAPI_INSTANCE_ID and settings.ZAPI_TOKEN):
            logger.warning("Z-API não configurada; WhatsApp não enviado")
            return False
        if not phone:
            logger.warning("sem telefone de destino; WhatsApp não enviado")
            return False
        url = ZAPI_URL.format(instance=settings.ZAPI_INSTANCE_ID, token=settings.ZAPI_TOKEN)
        try:
            async with self._client() as client:
                resp = await client.post(url, json={"phone": phone, "message": message})
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("falha ao enviar WhatsApp: %s", e)
            return False
        return True

    async def send_email(self, to: str, subject: str, body_html: str) -> bool:
        if not settings.RESEND_API_KEY:
            logger.warning("RESEND_API_KEY ausente; e-mail para %s não enviado", to)
            return False
        try:
            async with self._client() as client:
                resp = await client.post(
                    RESEND_URL,
                    headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
                    json={"from": settings.EMAIL_FROM, "to": [to], "subject": subject, "html": body_html},
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("falha ao enviar e-mail para %s: %s", to, e)
            return False
        return True

    # -------------------- eventos --------------------
    async def new_order(self, order: OrderSnapshot) -> None:
        await self.send_whatsapp(settings.ADMIN_WHATSAPP, new_order_message(order))

    async def order_paid(self, order: OrderSnapshot) -> None:
        await self.send_email(
            order.customer_email,
            f"Pagamento Confirmado - Pedido #{order.order_nsu}",
            paid_email_html(order),
        )
        if settings.ADMIN_EMAIL:
            await self.send_email(
                settings.ADMIN_EMAIL,
                f"💰 Novo Pagamento - {_cents_brl(order.total_amount)} - Pedido #{order.order_nsu}",
                paid_email_html(order),
            )
        await self.send_whatsapp(settings.ADMIN_WHATSAPP, paid_order_message(order))


_notifier = Notifier()


def get_notifier() -> Notifier:
    return _notifier
