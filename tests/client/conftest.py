# tests/client/conftest.py
from __future__ import annotations

import json

import httpx
import pytest

from tempero_pay.client import Cart, CustomerInfo, FunctionsClient

BASE_URL = "http://loja.test/api/v1"


class RemoteStub:
    """Procedures falsas: `handlers[nome](corpo)` devolve dict ou httpx.Response."""

    def __init__(self):
        self.handlers = {}
        self.calls: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.calls.append((name, body))
        handler = self.handlers.get(name)
        if handler is None:
            return httpx.Response(404, json={"error": f"procedure {name} não registrada"})
        result = handler(body)
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json=result)

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def remote():
    return RemoteStub()


@pytest.fixture
async def functions(remote):
    async with FunctionsClient(BASE_URL, transport=httpx.MockTransport(remote)) as fc:
        yield fc


@pytest.fixture
def shop_cart():
    cart = Cart()
    cart.add(1, "Pimenta Calabresa", "21.25", 2)
    return cart


@pytest.fixture
def buyer():
    return CustomerInfo(name="Maria Souza", email="maria@example.com", phone="11987654321")
