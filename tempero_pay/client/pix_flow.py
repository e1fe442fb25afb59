# tempero_pay/client/pix_flow.py
"""
Checkout PIX da loja: cria o pedido, monta o "copia e cola" e acompanha o
pagamento consultando `check-payment` em intervalo fixo.

Há no máximo uma tarefa de consulta por checkout. Ela é cancelada ao
abandonar, ao fechar, ao sair do `async with`, quando o pagamento é
confirmado ou quando `max_poll_duration` estoura.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from decimal import Decimal

from tempero_pay.client.cart import Cart
from tempero_pay.client.customer import CustomerInfo
from tempero_pay.client.errors import CheckoutValidationError, RemoteCallError
from tempero_pay.client.functions import FunctionsClient
from tempero_pay.core.config import settings
from tempero_pay.services.pix_code import PixPaymentData, generate_pix_code

logger = logging.getLogger(__name__)


class PixState:
    IDLE = "idle"
    ORDER_CREATED = "order_created"
    PAID = "paid"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class PixOrder:
    order_nsu: str
    tx_id: str
    total_amount: Decimal  # reais
    pix_code: str
    pix_key: str
    merchant_name: str


class PixCheckout:
    def __init__(
        self,
        functions: FunctionsClient,
        cart: Cart,
        *,
        poll_interval: float | None = None,
        max_poll_duration: float | None = None,
    ):
        self._functions = functions
        self._cart = cart
        self.poll_interval = poll_interval if poll_interval is not None else settings.PIX_POLL_INTERVAL_SECONDS
        self.max_poll_duration = (
            max_poll_duration if max_poll_duration is not None else settings.PIX_POLL_MAX_SECONDS
        )
        self.state = PixState.IDLE
        self.order: PixOrder | None = None
        self.poll_timed_out = False
        self._poll_task: asyncio.Task | None = None
        self._emails_requested = False

    # -------------------- criação --------------------
    async def start(self, customer: CustomerInfo) -> PixOrder:
        if self.state != PixState.IDLE:
            raise CheckoutValidationError("Pedido PIX já criado para este checkout")
        if self._cart.is_empty:
            raise CheckoutValidationError("Seu carrinho está vazio")

        body = {"items": self._cart.items_payload(), "customer": customer.validated()}
        coupon = self._cart.coupon_payload()
        if coupon:
            body["coupon"] = coupon

        # falha aqui mantém o estado idle; o chamador mostra o erro no formulário
        data = await self._functions.call("create-pix-order", body)

        pix = data.get("pixSettings") or {}
        total = Decimal(str(data["totalAmount"])).quantize(Decimal("0.01"))
        code = generate_pix_code(
            PixPaymentData(
                pix_key=pix.get("pixKey", ""),
                pix_key_type=pix.get("pixKeyType") or "random",
                merchant_name=pix.get("merchantName", ""),
                merchant_city=pix.get("merchantCity", ""),
                amount=total,
                tx_id=data.get("txId") or "",
            )
        )
        if data.get("pixCode") and data["pixCode"] != code:
            logger.warning("código PIX local difere do servidor para %s", data.get("orderNsu"))

        self.order = PixOrder(
            order_nsu=data["orderNsu"],
            tx_id=data.get("txId") or "",
            total_amount=total,
            pix_code=code,
            pix_key=pix.get("pixKey", ""),
            merchant_name=pix.get("merchantName", ""),
        )
        self.state = PixState.ORDER_CREATED
        logger.info("pedido PIX %s criado; aguardando pagamento", self.order.order_nsu)
        self.start_polling()
        return self.order

    # -------------------- consulta --------------------
    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start_polling(self) -> None:
        """Inicia (ou reinicia) a consulta. Pedido já pago ou abandonado não volta a consultar."""
        if self.state != PixState.ORDER_CREATED:
            return
        self._cancel_task()
        self.poll_timed_out = False
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())

    async def _poll_loop(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        while self.state == PixState.ORDER_CREATED:
            await asyncio.sleep(self.poll_interval)
            if self.max_poll_duration and loop.time() - started >= self.max_poll_duration:
                self.poll_timed_out = True
                logger.info("consulta do pedido %s encerrada por tempo", self.order.order_nsu)
                return
            try:
                data = await self._functions.call("check-payment", {"orderNsu": self.order.order_nsu})
            except RemoteCallError as e:
                logger.warning("falha ao consultar pedido %s: %s", self.order.order_nsu, e.message)
                continue
            remote = data.get("order") if isinstance(data, dict) else None
            if not isinstance(remote, dict):
                logger.warning("resposta inesperada ao consultar pedido %s", self.order.order_nsu)
                continue
            if remote.get("status") == "paid":
                await self._on_paid()
                return

    async def _on_paid(self) -> None:
        self.state = PixState.PAID
        self._cart.clear()
        logger.info("pagamento PIX confirmado: %s", self.order.order_nsu)
        if self._emails_requested:
            return
        self._emails_requested = True
        try:
            await self._functions.call("send-order-emails", {"orderNsu": self.order.order_nsu})
        except RemoteCallError as e:
            logger.warning("e-mail de confirmação não enviado para %s: %s", self.order.order_nsu, e.message)

    def _cancel_task(self) -> asyncio.Task | None:
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def stop_polling(self) -> None:
        task = self._cancel_task()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def wait(self) -> None:
        """Espera a consulta atual terminar (pago, tempo esgotado ou cancelada)."""
        task = self._poll_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # -------------------- saída --------------------
    async def abandon(self) -> None:
        """Cliente voltou ao carrinho sem pagar."""
        if self.state == PixState.ORDER_CREATED:
            self.state = PixState.ABANDONED
        await self.stop_polling()

    async def close(self) -> None:
        await self.stop_polling()

    async def __aenter__(self) -> "PixCheckout":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
