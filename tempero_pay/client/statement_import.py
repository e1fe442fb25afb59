from __future__ import annotations

import logging
import os

from tempero_pay.client.errors import StatementParseError
from tempero_pay.client.functions import FunctionsClient
from tempero_pay.schemas.statement import BankTransaction
from tempero_pay.services.statement_parser import parse_statement

logger = logging.getLogger(__name__)

EMPTY_STATEMENT = "Nenhuma transação encontrada no arquivo. Verifique o formato."


def _decode(content: bytes | str) -> str:
    if isinstance(content, str):
        return content
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


class StatementImporter:
    """Lê o extrato no painel admin e envia as transações para conciliação."""

    def __init__(self, functions: FunctionsClient):
        self._functions = functions

    def parse(self, filename: str, content: bytes | str) -> list[BankTransaction]:
        ext = os.path.splitext(filename or "")[1]
        transactions = parse_statement(_decode(content), ext)
        if not transactions:
            raise StatementParseError(EMPTY_STATEMENT)
        logger.info("extrato %s: %d transações", filename, len(transactions))
        return transactions

    async def reconcile(self, transactions: list[BankTransaction], *, auto_confirm: bool = False) -> dict:
        return await self._functions.call(
            "process-bank-statement",
            {
                "transactions": [t.model_dump(mode="json") for t in transactions],
                "autoConfirm": auto_confirm,
            },
        )

    async def import_file(self, filename: str, content: bytes | str, *, auto_confirm: bool = False) -> dict:
        return await self.reconcile(self.parse(filename, content), auto_confirm=auto_confirm)
