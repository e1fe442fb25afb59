# tempero_pay/client/functions.py
"""Chamada das procedures remotas (`POST /api/v1/<nome>`) a partir da loja."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from tempero_pay.client.errors import RemoteCallError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Erro ao processar pagamento. Tente novamente."


def extract_error_message(payload: Any, fallback: str = GENERIC_ERROR) -> str:
    """
    Texto legível do erro: descrição do gateway (`details.error_messages`),
    depois `error`, depois `message`, por fim o fallback.
    """
    if not isinstance(payload, dict):
        return fallback

    details = payload.get("details")
    if isinstance(details, dict):
        msgs = details.get("error_messages") or details.get("errors")
        if isinstance(msgs, list) and msgs and isinstance(msgs[0], dict):
            desc = msgs[0].get("description") or msgs[0].get("message")
            if desc:
                return str(desc)

    for key in ("error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return fallback


class FunctionsClient:
    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else None
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, transport=transport, timeout=timeout
        )

    async def call(self, name: str, body: dict | None = None) -> dict:
        try:
            resp = await self._http.post(f"/{name}", json=body or {})
        except httpx.HTTPError as e:
            logger.warning("procedure %s indisponível: %s", name, e)
            raise RemoteCallError(GENERIC_ERROR) from e

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}

        if resp.is_error:
            raise RemoteCallError(extract_error_message(data), status_code=resp.status_code, payload=data)
        if isinstance(data, dict) and data.get("error"):
            raise RemoteCallError(extract_error_message(data), status_code=resp.status_code, payload=data)
        return data

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "FunctionsClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()
