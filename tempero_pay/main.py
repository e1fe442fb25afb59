from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tempero_pay.core.config import settings
from tempero_pay.core.errors import register_exception_handlers
from tempero_pay.core.logging import setup_logging
from tempero_pay.database.init_db import init_db

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


# -----------------------------------------------------------------------------
# App
# -----------------------------------------------------------------------------
app = FastAPI(title="Tempero Pay API", lifespan=lifespan)

# -----------------------------------------------------------------------------
# CORS: a loja e os provedores chamam de qualquer origem
# -----------------------------------------------------------------------------
ALLOWED_HEADERS = [
    "authorization",
    "x-client-info",
    "apikey",
    "content-type",
    "accept",
    "prefer",
    "x-webhook-secret",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=ALLOWED_HEADERS,
)

register_exception_handlers(app)

# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------
from tempero_pay.api.v1.routes import admin_settings, auth, boleto, coupons, health, payments, pix, statement  # noqa: E402
from tempero_pay.api.v1.webhooks import boleto as boleto_webhook  # noqa: E402
from tempero_pay.api.v1.webhooks import infinitepay as infinitepay_webhook  # noqa: E402

app.include_router(health.router, prefix="/api/v1", tags=["health"])
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(pix.router, prefix="/api/v1", tags=["pix"])
app.include_router(boleto.router, prefix="/api/v1", tags=["boleto"])
app.include_router(payments.router, prefix="/api/v1", tags=["payments"])
app.include_router(statement.router, prefix="/api/v1", tags=["statement"])
app.include_router(coupons.router, prefix="/api/v1", tags=["coupons"])
app.include_router(admin_settings.router, prefix="/api/v1", tags=["admin"])
app.include_router(boleto_webhook.router, prefix="/api/v1")
app.include_router(infinitepay_webhook.router, prefix="/api/v1")
