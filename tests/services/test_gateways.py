# tests/services/test_gateways.py
from __future__ import annotations

import json

import httpx
import pytest

from tempero_pay.core.config import settings
from tempero_pay.core.errors import GatewayError, NotConfiguredError
from tempero_pay.schemas.checkout import CartItem, Customer
from tempero_pay.services.gateways import ASAAS_URLS, GatewayClient, provider_error_message

CUSTOMER = Customer(name="Maria Souza", email="maria@example.com", phone="11987654321", document="529.982.247-25")


@pytest.mark.parametrize(
    "data, expected",
    [
        ({"error_messages": [{"description": "Handle inválido"}], "message": "m"}, "Handle inválido"),
        ({"errors": [{"code": "x", "description": "CPF inválido"}]}, "CPF inválido"),
        ({"message": "Falhou", "error": "e"}, "Falhou"),
        ({"error": "invalid_request"}, "invalid_request"),
        ({}, "fallback"),
        (["lista"], "fallback"),
    ],
)
def test_provider_error_message(data, expected):
    assert provider_error_message(data, "fallback") == expected


@pytest.mark.parametrize(
    "env_var, configured, expected",
    [
        ("", "production", ASAAS_URLS["production"]),
        ("", None, ASAAS_URLS["sandbox"]),
        ("sandbox", "production", ASAAS_URLS["sandbox"]),
    ],
)
def test_asaas_environment(monkeypatch, env_var, configured, expected):
    monkeypatch.setattr(settings, "ASAAS_ENV", env_var)
    assert GatewayClient.asaas_base_url(configured) == expected


def _boleto_kwargs(**kw):
    data = dict(
        access_token="tok",
        environment="sandbox",
        customer=CUSTOMER,
        value_cents=4250,
        due_date="2026-03-13",
        description="Pedido BOL_1",
        external_reference="BOL_1",
    )
    data.update(kw)
    return data


async def test_asaas_reuses_existing_customer(monkeypatch):
    monkeypatch.setattr(settings, "ASAAS_ACCESS_TOKEN", "")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        assert request.headers["access_token"] == "tok"
        if request.url.path.endswith("/customers"):
            return httpx.Response(200, json={"data": [{"id": "cus_1", "email": "maria@example.com"}]})
        body = json.loads(request.content)
        assert body["customer"] == "cus_1"
        assert body["value"] == 42.5
        assert body["billingType"] == "BOLETO"
        return httpx.Response(200, json={"id": "pay_1", "bankSlipUrl": "https://asaas/b/pay_1"})

    payment = await GatewayClient(transport=httpx.MockTransport(handler)).create_asaas_boleto(**_boleto_kwargs())
    assert payment["id"] == "pay_1"
    assert seen == [("GET", "/api/v3/customers"), ("POST", "/api/v3/payments")]


async def test_asaas_without_token(monkeypatch):
    monkeypatch.setattr(settings, "ASAAS_ACCESS_TOKEN", "")
    with pytest.raises(NotConfiguredError):
        await GatewayClient().create_asaas_boleto(**_boleto_kwargs(access_token=""))


async def test_infinitepay_network_error(monkeypatch):
    monkeypatch.setattr(settings, "INFINITEPAY_HANDLE", "temperos")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timeout", request=request)

    client = GatewayClient(transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayError) as exc:
        await client.create_infinitepay_link(
            order_nsu="ORDER_1",
            items=[CartItem(id=1, name="Pimenta", price=10, quantity=1)],
            customer=None,
            redirect_url="https://loja/ok",
        )
    assert exc.value.status_code == 502
    assert exc.value.message == "Failed to create payment link"
