# tests/client/test_pix_checkout.py
from __future__ import annotations

import asyncio
import json
from decimal import Decimal

import httpx
import pytest

from tempero_pay.client import (
    Cart,
    CheckoutValidationError,
    CustomerInfo,
    FunctionsClient,
    PixCheckout,
    PixState,
    RemoteCallError,
)
from tempero_pay.main import app
from tempero_pay.services import orders as order_service
from tempero_pay.services.pix_code import parse_pix_code, validate_pix_code

FAST = {"poll_interval": 0.01, "max_poll_duration": 5}


def _created(body: dict) -> dict:
    return {
        "success": True,
        "orderNsu": "PIX_1773144000000_abc123",
        "txId": "PIX1773144000000abc123",
        "totalAmount": 42.5,
        "pixSettings": {
            "pixKey": "loja@temperos.com.br",
            "pixKeyType": "email",
            "merchantName": "Temperos Naturais",
            "merchantCity": "Sao Paulo",
        },
    }


def _status(value: str):
    return lambda body: {"success": True, "order": {"orderNsu": body["orderNsu"], "status": value}}


# -------------------- validação antes da chamada --------------------
async def test_empty_cart(functions, remote, buyer):
    checkout = PixCheckout(functions, Cart(), **FAST)
    with pytest.raises(CheckoutValidationError, match="carrinho está vazio"):
        await checkout.start(buyer)
    assert remote.calls == []
    assert checkout.state == PixState.IDLE


@pytest.mark.parametrize(
    "customer, message",
    [
        (CustomerInfo(name="", email="maria@example.com"), "Preencha nome e e-mail para continuar"),
        (CustomerInfo(name="Maria", email="maria-sem-arroba"), "E-mail inválido"),
    ],
)
async def test_customer_validation(functions, remote, shop_cart, customer, message):
    checkout = PixCheckout(functions, shop_cart, **FAST)
    with pytest.raises(CheckoutValidationError) as exc:
        await checkout.start(customer)
    assert exc.value.message == message
    assert remote.calls == []


async def test_failed_creation_stays_idle(functions, remote, shop_cart, buyer):
    remote.handlers["create-pix-order"] = lambda body: httpx.Response(400, json={"error": "PIX não configurado pela loja"})
    checkout = PixCheckout(functions, shop_cart, **FAST)

    with pytest.raises(RemoteCallError) as exc:
        await checkout.start(buyer)
    assert exc.value.message == "PIX não configurado pela loja"
    assert exc.value.status_code == 400
    assert checkout.state == PixState.IDLE
    assert not checkout.is_polling
    assert not shop_cart.is_empty


# -------------------- criação e consulta --------------------
async def test_start_builds_code_and_polls_until_paid(functions, remote, shop_cart, buyer):
    answers = iter([httpx.Response(503, json={"error": "indisponível"}), "pending", "paid"])

    def check(body):
        answer = next(answers)
        return answer if isinstance(answer, httpx.Response) else _status(answer)(body)

    remote.handlers.update(
        {
            "create-pix-order": _created,
            "check-payment": check,
            "send-order-emails": lambda body: {"success": True, "alreadySent": False},
        }
    )
    shop_cart.coupon_code = "TEMPERO10"

    async with PixCheckout(functions, shop_cart, **FAST) as checkout:
        order = await checkout.start(buyer)
        assert checkout.state == PixState.ORDER_CREATED
        assert checkout.is_polling

        assert order.total_amount == Decimal("42.50")
        assert validate_pix_code(order.pix_code)
        fields = parse_pix_code(order.pix_code)
        assert fields["54"] == "42.50"
        assert fields["59"] == "TEMPEROS NATURAIS"

        await checkout.wait()

    assert checkout.state == PixState.PAID
    assert shop_cart.is_empty
    assert shop_cart.coupon_code is None
    assert remote.names() == [
        "create-pix-order",
        "check-payment",
        "check-payment",
        "check-payment",
        "send-order-emails",
    ]
    sent = remote.calls[0][1]
    assert sent["coupon"] == {"code": "TEMPERO10"}
    assert sent["customer"] == {"name": "Maria Souza", "email": "maria@example.com", "phone": "11987654321"}


async def test_malformed_status_reply_is_retried(functions, remote, shop_cart, buyer):
    answers = iter([["inesperado"], {"success": True, "order": "PIX_1773144000000_abc123"}, "paid"])

    def check(body):
        answer = next(answers)
        return _status(answer)(body) if isinstance(answer, str) else answer

    remote.handlers.update(
        {
            "create-pix-order": _created,
            "check-payment": check,
            "send-order-emails": lambda body: {"success": True, "alreadySent": False},
        }
    )
    async with PixCheckout(functions, shop_cart, **FAST) as checkout:
        await checkout.start(buyer)
        await checkout.wait()

    assert checkout.state == PixState.PAID
    assert remote.names().count("check-payment") == 3


async def test_second_start_is_rejected(functions, remote, shop_cart, buyer):
    remote.handlers.update({"create-pix-order": _created, "check-payment": _status("pending_pix")})
    async with PixCheckout(functions, shop_cart, poll_interval=60) as checkout:
        await checkout.start(buyer)
        with pytest.raises(CheckoutValidationError):
            await checkout.start(buyer)
    assert remote.names() == ["create-pix-order"]


async def test_abandon_cancels_polling(functions, remote, shop_cart, buyer):
    remote.handlers.update({"create-pix-order": _created, "check-payment": _status("pending_pix")})
    checkout = PixCheckout(functions, shop_cart, **FAST)
    await checkout.start(buyer)
    await asyncio.sleep(0.05)

    await checkout.abandon()
    assert checkout.state == PixState.ABANDONED
    assert not checkout.is_polling

    calls = len(remote.calls)
    checkout.start_polling()
    await asyncio.sleep(0.05)
    assert len(remote.calls) == calls
    assert not checkout.is_polling
    # carrinho continua para o cliente tentar de novo
    assert not shop_cart.is_empty


async def test_context_exit_cancels_polling(functions, remote, shop_cart, buyer):
    remote.handlers.update({"create-pix-order": _created, "check-payment": _status("pending_pix")})
    async with PixCheckout(functions, shop_cart, **FAST) as checkout:
        await checkout.start(buyer)
        task = checkout._poll_task
    assert task.cancelled() or task.done()
    assert not checkout.is_polling
    assert checkout.state == PixState.ORDER_CREATED


async def test_poll_duration_is_bounded(functions, remote, shop_cart, buyer):
    remote.handlers.update({"create-pix-order": _created, "check-payment": _status("pending_pix")})
    checkout = PixCheckout(functions, shop_cart, poll_interval=0.01, max_poll_duration=0.05)
    await checkout.start(buyer)
    await asyncio.wait_for(checkout.wait(), timeout=2)

    assert checkout.poll_timed_out
    assert checkout.state == PixState.ORDER_CREATED
    assert not checkout.is_polling

    # nova tentativa manual reinicia o limite
    checkout.start_polling()
    assert not checkout.poll_timed_out
    await checkout.close()


async def test_paid_checkout_does_not_poll_again(functions, remote, shop_cart, buyer):
    remote.handlers.update(
        {
            "create-pix-order": _created,
            "check-payment": _status("paid"),
            "send-order-emails": lambda body: httpx.Response(500, json={"error": "Resend fora do ar"}),
        }
    )
    checkout = PixCheckout(functions, shop_cart, **FAST)
    await checkout.start(buyer)
    await checkout.wait()
    assert checkout.state == PixState.PAID

    checkout.start_polling()
    assert not checkout.is_polling
    assert remote.names().count("send-order-emails") == 1


# -------------------- ponta a ponta contra a API --------------------
class CountingTransport(httpx.AsyncBaseTransport):
    def __init__(self, inner: httpx.AsyncBaseTransport, before):
        self._inner = inner
        self._before = before

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self._before(request)
        return await self._inner.handle_async_request(request)


async def test_pix_checkout_against_api(client, session_factory, pix_enabled, notifier):
    pix_enabled()
    checks = {"n": 0}

    def before(request: httpx.Request) -> None:
        if not request.url.path.endswith("/check-payment"):
            return
        checks["n"] += 1
        if checks["n"] == 3:
            # pagamento compensado entre a 2ª e a 3ª consulta
            nsu = json.loads(request.content)["orderNsu"]
            with session_factory() as sess:
                order = order_service.require_order(sess, nsu)
                order_service.mark_paid(
                    sess, order.id, paid_amount=order.total_amount, mode="bank_statement", source="extrato_bancario"
                )
                sess.commit()

    transport = CountingTransport(httpx.ASGITransport(app=app), before)
    cart = Cart()
    cart.add(7, "Páprica Defumada", "21.25", 2)
    buyer = CustomerInfo(name="Maria Souza", email="maria@example.com", phone="11987654321")

    async with FunctionsClient("http://testserver/api/v1", transport=transport) as functions:
        async with PixCheckout(functions, cart, **FAST) as checkout:
            order = await checkout.start(buyer)
            await asyncio.wait_for(checkout.wait(), timeout=5)

    assert checks["n"] == 3
    assert checkout.state == PixState.PAID
    assert cart.is_empty
    assert order.total_amount == Decimal("42.50")
    assert validate_pix_code(order.pix_code)

    with session_factory() as sess:
        stored = order_service.require_order(sess, order.order_nsu)
        assert stored.total_amount == 4250
        assert stored.status == "paid"
    assert [s.order_nsu for s in notifier.paid] == [order.order_nsu]
