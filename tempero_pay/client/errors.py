from __future__ import annotations

from typing import Any


class CheckoutValidationError(ValueError):
    """Dado do cliente recusado antes de qualquer chamada remota."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class RemoteCallError(Exception):
    """
    Falha de uma procedure remota. `message` já traz o texto do provedor
    quando a resposta tiver um; `payload` é o corpo bruto devolvido.
    """

    def __init__(self, message: str, status_code: int | None = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class StatementParseError(ValueError):
    pass
