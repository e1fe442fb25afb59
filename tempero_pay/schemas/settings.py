from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class PixSettings(BaseModel):
    pix_key: str = Field(min_length=1)
    pix_key_type: str = "random"
    merchant_name: str = Field(min_length=1)
    merchant_city: str = Field(min_length=1)


class BoletoSettings(BaseModel):
    bank_code: str = ""
    bank_name: str = ""
    agency: str = ""
    account: str = ""
    account_type: str = "corrente"
    beneficiary_name: str = ""
    beneficiary_document: str = ""
    instructions: str = ""
    days_to_expire: int = Field(default=3, ge=1, le=60)
    mode: str = "manual"  # manual | registered | asaas
    provider: str | None = None
    registered: dict = Field(default_factory=dict)


class CardGatewaySettings(BaseModel):
    enabled: bool = False
    gateway_type: str | None = None
    payment_link: str = ""
    whatsapp_number: str = ""
    instructions: str = ""
    webhook_secret: str | None = None


class CardGatewayRequest(BaseModel):
    action: Literal["get_settings", "check_config", "save_settings"]
    gateway: Literal["infinitepay", "pagseguro"] = "infinitepay"
    settings: CardGatewaySettings | None = None


class BankConnection(BaseModel):
    bank_id: str
    enabled: bool = False
    status: Literal["connected", "disconnected", "pending", "error"] = "disconnected"
    pix_key: str = ""
    api_key: str = ""
    api_secret: str = ""
    client_id: str = ""
    webhook_url: str = ""
    webhook_secret: str = ""
    last_sync: str | None = None


class BankConnectionIn(BaseModel):
    pix_key: str = ""
    api_key: str = ""
    api_secret: str = ""
    client_id: str = ""
    webhook_url: str = ""
    webhook_secret: str = ""
