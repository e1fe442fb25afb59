from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BankTransaction(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    amount: Decimal = Field(ge=0, decimal_places=2)
    description: str = "Transação bancária"
    type: Literal["credit", "debit"]
    reference: str | None = None

    @field_validator("date")
    @classmethod
    def _calendar_date(cls, v: str) -> str:
        # o padrão aceita 2026-02-30
        try:
            datetime.date.fromisoformat(v)
        except ValueError:
            raise ValueError("data inexistente") from None
        return v


class MatchedTransaction(BaseModel):
    date: str
    amount: float
    description: str
    reference: str | None = None


class ReconciliationResult(BaseModel):
    order_nsu: str
    order_amount: float  # reais
    matched_transaction: MatchedTransaction | None = None
    status: Literal["matched", "not_found", "amount_mismatch"]
    confidence: int = Field(ge=0, le=100)
    confirmed: bool = False


class ProcessStatementRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transactions: list[BankTransaction] = Field(default_factory=list)
    auto_confirm: bool = Field(default=False, alias="autoConfirm")


class VerifyPixRequest(BaseModel):
    transactions: list[BankTransaction] | None = None
