# tempero_pay/core/errors.py
from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger("tempero_pay")


class ServiceError(Exception):
    """Falha de regra de negócio que vira resposta `{error}` com status HTTP."""

    status_code = 400

    def __init__(self, message: str, *, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details


class NotConfiguredError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class GatewayError(ServiceError):
    """
    Erro vindo de um provedor externo (InfinitePay, PagSeguro, Asaas).
    `details` carrega o corpo devolvido pelo provedor.
    """

    status_code = 502


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def _error_body(message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def _service_exc(req: Request, exc: ServiceError):
        logger.warning("%s %s -> %s: %s", req.method, req.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, exc.details))

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        d = exc.detail
        # detail já no formato {error, ...} passa adiante
        if isinstance(d, dict) and "error" in d:
            content = d
        else:
            content = _error_body(str(d) if d is not None else "Requisição recusada")
        return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details = [
            {"path": ".".join(str(p) for p in e.get("loc", ())), "reason": str(e.get("msg") or "invalid")}
            for e in exc.errors()
            if isinstance(e, dict)
        ]
        return JSONResponse(status_code=422, content=_error_body("Dados inválidos", details))

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        return JSONResponse(status_code=500, content={"error": "Internal error", "trace_id": trace_id})
