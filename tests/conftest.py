# tests/conftest.py
from __future__ import annotations

import os
from datetime import datetime, timezone


# ============================================================
# Ambiente antes de importar o app: banco em memória e segredo fixo
# ============================================================
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tempero_pay.core.security import create_access_token  # noqa: E402
from tempero_pay.database.init_db import init_db  # noqa: E402
from tempero_pay.database.session import get_db  # noqa: E402
from tempero_pay.main import app  # noqa: E402
from tempero_pay.models.order import Order, OrderStatus  # noqa: E402
from tempero_pay.services import settings_store  # noqa: E402
from tempero_pay.services.gateways import GatewayClient, get_gateway_client  # noqa: E402
from tempero_pay.services.notifications import get_notifier  # noqa: E402

PIX_SETTINGS = {
    "pix_key": "loja@temperos.com.br",
    "pix_key_type": "email",
    "merchant_name": "Temperos Naturais",
    "merchant_city": "Sao Paulo",
}

BOLETO_SETTINGS = {
    "bank_code": "260",
    "bank_name": "Nu Pagamentos",
    "agency": "0001",
    "account": "12345-6",
    "account_type": "corrente",
    "beneficiary_name": "Temperos Naturais LTDA",
    "beneficiary_document": "11222333000181",
    "instructions": "Não receber após o vencimento",
    "days_to_expire": 3,
}


# ==========================
# Banco: SQLite em memória, uma conexão compartilhada
# ==========================
@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.close()


# ==========================
# Dublês de notificação e de provedores
# ==========================
class FakeNotifier:
    """Registra os avisos em vez de chamar Resend / Z-API."""

    def __init__(self):
        self.new_orders = []
        self.paid = []

    async def new_order(self, snap):
        self.new_orders.append(snap)

    async def order_paid(self, snap):
        self.paid.append(snap)


class ProviderStub:
    """Handler do httpx.MockTransport; cada teste define `handler`."""

    def __init__(self):
        self.handler = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is None:
            return httpx.Response(500, json={"error": "provedor não esperado"})
        return self.handler(request)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def provider():
    return ProviderStub()


@pytest.fixture
def gateways(provider):
    return GatewayClient(transport=httpx.MockTransport(provider))


@pytest.fixture
def client(session_factory, notifier, gateways):
    def _get_db():
        sess = session_factory()
        try:
            yield sess
        finally:
            sess.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_gateway_client] = lambda: gateways
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ==========================
# Autenticação
# ==========================
@pytest.fixture
def admin_headers():
    tok = create_access_token(sub="1", extra={"role": "admin", "user": "admin@temperos.com.br"})
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture
def customer_headers():
    tok = create_access_token(sub="2", extra={"role": "customer", "user": "cliente@example.com"})
    return {"Authorization": f"Bearer {tok}"}


# ==========================
# Fábricas de dados
# ==========================
@pytest.fixture
def store_settings(db):
    def _put(key: str, value):
        settings_store.put_value(db, key, value)
        db.commit()

    return _put


@pytest.fixture
def make_order(db):
    seq = {"n": 0}

    def _make(
        total_cents: int = 4250,
        *,
        status: str = OrderStatus.PENDING_PIX,
        payment_method: str = "pix",
        created_at: datetime | None = None,
        order_nsu: str | None = None,
        customer_name: str = "Maria Souza",
    ) -> Order:
        seq["n"] += 1
        order = Order(
            order_nsu=order_nsu or f"PIX_170000000000{seq['n']}_abc{seq['n']}",
            status=status,
            total_amount=total_cents,
            customer_name=customer_name,
            customer_email="maria@example.com",
            customer_phone="11987654321",
            items=[{"id": 1, "name": "Páprica Defumada", "price": total_cents / 100, "quantity": 1}],
            payment_method=payment_method,
            created_at=created_at or datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def cart_body():
    return {
        "items": [{"id": 1, "name": "Pimenta Calabresa", "price": 21.25, "quantity": 2}],
        "customer": {"name": "Maria Souza", "email": "maria@example.com", "phone": "11987654321"},
    }


@pytest.fixture
def pix_enabled(store_settings):
    def _enable(**overrides):
        store_settings(settings_store.PIX_SETTINGS, {**PIX_SETTINGS, **overrides})

    return _enable


@pytest.fixture
def boleto_enabled(store_settings):
    def _enable(**overrides):
        store_settings(settings_store.BOLETO_SETTINGS, {**BOLETO_SETTINGS, **overrides})

    return _enable
