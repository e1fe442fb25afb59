# tempero_pay/services/settings_store.py
"""Configurações da loja guardadas como JSON por chave (`store_settings`)."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from tempero_pay.core.errors import NotConfiguredError, NotFoundError, ServiceError
from tempero_pay.models.store_setting import StoreSetting
from tempero_pay.schemas.settings import (
    BankConnection,
    BankConnectionIn,
    BoletoSettings,
    CardGatewaySettings,
    PixSettings,
)

logger = logging.getLogger(__name__)

PIX_SETTINGS = "pix_settings"
PIX_SETTINGS_OVERRIDE = "pix_settings_override"
BOLETO_SETTINGS = "boleto_settings"
BOLETO_REGISTERED_SETTINGS = "boleto_registered_settings"
BANK_CONNECTIONS = "bank_connections"

# chaves editáveis pela rota genérica de admin
EDITABLE_KEYS = (PIX_SETTINGS, PIX_SETTINGS_OVERRIDE, BOLETO_SETTINGS, BOLETO_REGISTERED_SETTINGS)

CARD_GATEWAYS = ("infinitepay", "pagseguro")

SUPPORTED_BANKS = (
    {"id": "nubank", "name": "Nubank PJ", "api_supported": False, "webhook_supported": False, "import_supported": True},
    {"id": "banco_brasil", "name": "Banco do Brasil", "api_supported": True, "webhook_supported": True, "import_supported": True},
    {"id": "itau", "name": "Itaú Empresas", "api_supported": True, "webhook_supported": True, "import_supported": True},
    {"id": "bradesco", "name": "Bradesco Net Empresa", "api_supported": True, "webhook_supported": True, "import_supported": True},
    {"id": "santander", "name": "Santander Empresas", "api_supported": True, "webhook_supported": True, "import_supported": True},
    {"id": "caixa", "name": "Caixa Econômica", "api_supported": True, "webhook_supported": False, "import_supported": True},
)
_BANK_IDS = {b["id"] for b in SUPPORTED_BANKS}
_MASK = "********"


# -------------------- blobs --------------------
def get_value(db: Session, key: str, default: Any = None) -> Any:
    row = db.scalar(select(StoreSetting).where(StoreSetting.key == key))
    if row is None or row.value is None:
        return default
    return row.value


def put_value(db: Session, key: str, value: Any) -> StoreSetting:
    row = db.scalar(select(StoreSetting).where(StoreSetting.key == key))
    if row is None:
        row = StoreSetting(key=key, value=value)
        db.add(row)
    else:
        row.value = value
        row.updated_at = datetime.now(timezone.utc)
    db.flush()
    return row


# -------------------- PIX --------------------
def load_pix_settings(db: Session) -> PixSettings:
    base = get_value(db, PIX_SETTINGS) or {}
    override = get_value(db, PIX_SETTINGS_OVERRIDE) or {}
    if override.get("enabled") is False:
        raise NotConfiguredError("PIX não configurado pela loja")

    merged = dict(base)
    merged.update({k: v for k, v in override.items() if k != "enabled" and v not in (None, "")})
    try:
        return PixSettings.model_validate(merged)
    except ValidationError:
        raise NotConfiguredError("PIX não configurado pela loja")


# -------------------- boleto --------------------
def load_boleto_settings(db: Session) -> BoletoSettings:
    raw = get_value(db, BOLETO_SETTINGS)
    if not raw:
        raise NotConfiguredError("Boleto não configurado pela loja")
    try:
        return BoletoSettings.model_validate(raw)
    except ValidationError:
        raise NotConfiguredError("Configuração de boleto inválida")


def boleto_webhook_secret(db: Session) -> str:
    boleto = get_value(db, BOLETO_SETTINGS) or {}
    registered = get_value(db, BOLETO_REGISTERED_SETTINGS) or {}
    secret = (boleto.get("registered") or {}).get("webhook_secret")
    if not secret:
        secret = (registered.get("api") or {}).get("client_secret")
    return secret or ""


def registered_boleto_settings(db: Session) -> dict:
    """Modo registrado (Asaas): `boleto_settings.registered` + `boleto_registered_settings`."""
    boleto = get_value(db, BOLETO_SETTINGS) or {}
    registered = get_value(db, BOLETO_REGISTERED_SETTINGS) or {}
    mode = (boleto.get("mode") or registered.get("mode") or "").lower()
    provider = (boleto.get("provider") or registered.get("provider") or "").lower()
    if not (mode == "asaas" or (mode == "registered" and "asaas" in provider)):
        raise NotConfiguredError("Boleto registrado (Asaas) não está habilitado")

    api = dict(registered.get("api") or {})
    api.update({k: v for k, v in (boleto.get("registered") or {}).items() if v})
    return {
        "mode": mode,
        "provider": provider or "asaas",
        "access_token": api.get("access_token") or api.get("api_key") or "",
        "environment": (api.get("environment") or api.get("env") or "").lower(),
        "days_to_expire": int(boleto.get("days_to_expire") or 3),
        "description": boleto.get("instructions") or "",
    }


# -------------------- cartão --------------------
def card_gateway_key(gateway: str) -> str:
    if gateway not in CARD_GATEWAYS:
        raise ServiceError(f"Gateway desconhecido: {gateway}")
    return f"card_gateway_{gateway}"


def load_card_gateway(db: Session, gateway: str) -> CardGatewaySettings:
    raw = get_value(db, card_gateway_key(gateway)) or {}
    return CardGatewaySettings.model_validate(raw)


def save_card_gateway(db: Session, gateway: str, data: CardGatewaySettings) -> CardGatewaySettings:
    put_value(db, card_gateway_key(gateway), data.model_dump())
    db.commit()
    logger.info("gateway de cartão %s salvo (enabled=%s)", gateway, data.enabled)
    return data


# -------------------- conexões bancárias --------------------
def _require_bank(bank_id: str) -> None:
    if bank_id not in _BANK_IDS:
        raise NotFoundError(f"Banco não suportado: {bank_id}")


def list_connections(db: Session) -> dict[str, BankConnection]:
    raw = get_value(db, BANK_CONNECTIONS) or {}
    out = {}
    for bank_id, data in raw.items():
        out[bank_id] = BankConnection.model_validate({**data, "bank_id": bank_id})
    return out


def get_connection(db: Session, bank_id: str) -> BankConnection:
    _require_bank(bank_id)
    return list_connections(db).get(bank_id) or BankConnection(bank_id=bank_id)


def _store_connection(db: Session, conn: BankConnection) -> BankConnection:
    raw = dict(get_value(db, BANK_CONNECTIONS) or {})
    raw[conn.bank_id] = conn.model_dump()
    put_value(db, BANK_CONNECTIONS, raw)
    db.commit()
    return conn


def save_connection(db: Session, bank_id: str, data: BankConnectionIn) -> BankConnection:
    conn = get_connection(db, bank_id)
    changes = {k: v for k, v in data.model_dump().items() if v != _MASK}
    updated = conn.model_copy(update=changes)
    return _store_connection(db, updated)


def toggle_connection(db: Session, bank_id: str) -> BankConnection:
    conn = get_connection(db, bank_id)
    enabled = not conn.enabled
    updated = conn.model_copy(update={"enabled": enabled, "status": "pending" if enabled else "disconnected"})
    return _store_connection(db, updated)


def test_connection(db: Session, bank_id: str) -> BankConnection:
    conn = get_connection(db, bank_id)
    if conn.api_key and conn.api_secret:
        updated = conn.model_copy(
            update={"status": "connected", "last_sync": datetime.now(timezone.utc).isoformat()}
        )
    else:
        updated = conn.model_copy(update={"status": "error"})
    logger.info("teste de conexão %s: %s", bank_id, updated.status)
    return _store_connection(db, updated)


def active_connection(db: Session) -> BankConnection | None:
    for conn in list_connections(db).values():
        if conn.enabled and conn.status == "connected":
            return conn
    return None


def connection_public(conn: BankConnection) -> dict:
    data = conn.model_dump()
    # credenciais não voltam para o navegador
    for secret in ("api_secret", "webhook_secret"):
        data[secret] = _MASK if data.get(secret) else ""
    return data
