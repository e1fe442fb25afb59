# tests/api/test_payment_routes.py
from __future__ import annotations

import json

import httpx
import pytest

from tempero_pay.core.config import settings
from tempero_pay.models.order import Order, OrderStatus
from tempero_pay.services import settings_store


@pytest.fixture
def infinitepay(monkeypatch):
    monkeypatch.setattr(settings, "INFINITEPAY_HANDLE", "temperos")


@pytest.fixture
def pagseguro(monkeypatch):
    monkeypatch.setattr(settings, "PAGSEGURO_EMAIL", "loja@temperos.com.br")
    monkeypatch.setattr(settings, "PAGSEGURO_TOKEN", "ps-token")
    monkeypatch.setattr(settings, "PAGSEGURO_ENV", "sandbox")


# -------------------- create-payment-link --------------------
def test_payment_link_creates_pending_order(client, db, provider, notifier, infinitepay, cart_body):
    provider.handler = lambda req: httpx.Response(200, json={"url": "https://checkout.infinitepay.io/temperos/abc"})

    r = client.post("/api/v1/create-payment-link", json=cart_body)
    assert r.status_code == 200
    data = r.json()
    assert data["paymentUrl"] == "https://checkout.infinitepay.io/temperos/abc"
    assert data["orderNsu"].startswith("ORDER_")

    sent = json.loads(provider.requests[0].content)
    assert sent["handle"] == "temperos"
    assert sent["order_nsu"] == data["orderNsu"]
    assert sent["items"] == [{"quantity": 2, "price": 2125, "description": "Pimenta Calabresa"}]
    assert sent["customer"]["phone_number"] == "+5511987654321"

    order = db.query(Order).filter_by(order_nsu=data["orderNsu"]).one()
    assert order.status == OrderStatus.PENDING
    assert order.total_amount == 4250
    assert order.payment_link == data["paymentUrl"]
    assert len(notifier.new_orders) == 1


def test_payment_link_provider_error_is_reported(client, db, provider, infinitepay, cart_body):
    provider.handler = lambda req: httpx.Response(
        422, json={"error_messages": [{"description": "Handle inválido"}]}
    )
    r = client.post("/api/v1/create-payment-link", json=cart_body)
    assert r.status_code == 502
    assert r.json()["error"] == "Handle inválido"
    assert db.query(Order).count() == 0


def test_payment_link_requires_handle(client, cart_body):
    r = client.post("/api/v1/create-payment-link", json=cart_body)
    assert r.status_code == 400
    assert r.json()["error"] == "InfinitePay não configurado"


# -------------------- PagSeguro --------------------
def test_pagseguro_check_config(client, pagseguro):
    r = client.post("/api/v1/create-pagseguro-payment", json={"action": "check_config"})
    assert r.json() == {"configured": True}


def test_pagseguro_check_config_without_credentials(client):
    r = client.post("/api/v1/create-pagseguro-payment", json={"action": "check_config"})
    assert r.json() == {"configured": False}


def test_pagseguro_returns_pay_link(client, db, provider, pagseguro, cart_body):
    def handler(req: httpx.Request) -> httpx.Response:
        assert req.url.host == "sandbox.api.pagseguro.com"
        assert req.headers["Authorization"] == "Bearer ps-token"
        return httpx.Response(
            201,
            json={
                "links": [
                    {"rel": "SELF", "href": "https://sandbox.api.pagseguro.com/checkouts/CHEC_1"},
                    {"rel": "PAY", "href": "https://pagamento.sandbox.pagseguro.uol.com.br/CHEC_1"},
                ]
            },
        )

    provider.handler = handler
    r = client.post("/api/v1/create-pagseguro-payment", json=cart_body)
    assert r.status_code == 200
    data = r.json()
    assert data["paymentUrl"].endswith("/CHEC_1")
    assert data["orderNsu"].startswith("PS_")

    sent = json.loads(provider.requests[0].content)
    assert sent["reference_id"] == data["orderNsu"]
    assert sent["customer"]["phones"][0] == {"country": "55", "area": "11", "number": "987654321", "type": "MOBILE"}


def test_pagseguro_requires_phone(client, pagseguro, cart_body):
    cart_body["customer"].pop("phone")
    r = client.post("/api/v1/create-pagseguro-payment", json=cart_body)
    assert r.status_code == 400
    assert r.json()["error"] == "Telefone do cliente é obrigatório"


def test_pagseguro_invalid_body(client, pagseguro):
    r = client.post("/api/v1/create-pagseguro-payment", json={"items": []})
    assert r.status_code == 422


# -------------------- send-order-emails --------------------
def test_send_emails_requires_paid_order(client, make_order):
    order = make_order()
    r = client.post("/api/v1/send-order-emails", json={"orderNsu": order.order_nsu})
    assert r.status_code == 400
    assert r.json()["error"] == "Pedido ainda não está pago"


def test_send_emails_only_once(client, make_order, notifier):
    order = make_order(status=OrderStatus.PAID)

    r = client.post("/api/v1/send-order-emails", json={"orderNsu": order.order_nsu})
    assert r.json()["alreadySent"] is False
    r = client.post("/api/v1/send-order-emails", json={"orderNsu": order.order_nsu})
    assert r.json()["alreadySent"] is True
    assert [s.order_nsu for s in notifier.paid] == [order.order_nsu]


def test_send_emails_unknown_order(client):
    assert client.post("/api/v1/send-order-emails", json={"orderNsu": "PIX_0_x"}).status_code == 404
    assert client.post("/api/v1/send-order-emails", json={}).status_code == 400


# -------------------- card-gateway-settings --------------------
def test_card_gateway_get_hides_webhook_secret(client, store_settings):
    store_settings(
        "card_gateway_infinitepay",
        {"enabled": True, "gateway_type": "infinitepay", "webhook_secret": "segredo"},
    )
    r = client.post("/api/v1/card-gateway-settings", json={"action": "get_settings", "gateway": "infinitepay"})
    assert r.status_code == 200
    cfg = r.json()["settings"]
    assert cfg["enabled"] is True
    assert "webhook_secret" not in cfg


def test_card_gateway_save_requires_admin(client, customer_headers):
    body = {"action": "save_settings", "gateway": "pagseguro", "settings": {"enabled": True}}
    assert client.post("/api/v1/card-gateway-settings", json=body).status_code == 403
    assert client.post("/api/v1/card-gateway-settings", json=body, headers=customer_headers).status_code == 403


def test_card_gateway_save_keeps_existing_secret(client, db, admin_headers, store_settings):
    store_settings("card_gateway_infinitepay", {"enabled": False, "webhook_secret": "segredo"})
    body = {
        "action": "save_settings",
        "gateway": "infinitepay",
        "settings": {"enabled": True, "whatsapp_number": "5511999998888"},
    }
    r = client.post("/api/v1/card-gateway-settings", json=body, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["settings"]["whatsapp_number"] == "5511999998888"

    db.expire_all()
    cfg = settings_store.load_card_gateway(db, "infinitepay")
    assert cfg.enabled is True
    assert cfg.webhook_secret == "segredo"


def test_card_gateway_check_config(client, infinitepay):
    r = client.post("/api/v1/card-gateway-settings", json={"action": "check_config", "gateway": "infinitepay"})
    assert r.json() == {"configured": True}
