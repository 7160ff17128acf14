"""
core/http.py -- Async client for the authentication backend.

Every request this project makes goes through BackendClient.post_json(). The
client never interprets "ok" flags -- that is the caller's job. It only
guarantees two things: a reply with a JSON object body, or a TransportError.

Timeout: None by default. The flow imposes no local deadline; a configured
request_timeout is handed straight to httpx.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from core.config import get_settings

logger = logging.getLogger("authflow.http")

INVALID_RESPONSE = "Invalid response from server"


class TransportError(Exception):
    """The request did not produce a usable reply (network failure, bad body)."""


@dataclass(frozen=True)
class BackendReply:
    status_code: int
    payload: dict[str, Any]

    @property
    def is_success_status(self) -> bool:
        return 200 <= self.status_code < 300


class BackendClient:
    """Thin wrapper around one httpx.AsyncClient bound to the backend base URL.

    Args:
        base_url:  Scheme + host (+ optional prefix) of the backend.
        timeout:   Seconds, or None to disable the local timeout.
        transport: Optional httpx transport. Tests pass httpx.MockTransport or
                   httpx.ASGITransport here to avoid real network calls.
    """

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "BackendClient":
        cfg = get_settings()
        return cls(cfg.api_base_url, timeout=cfg.request_timeout, transport=transport)

    async def post_json(self, path: str, body: dict[str, Any]) -> BackendReply:
        """POST body as JSON and return the decoded reply.

        Non-2xx statuses are returned, not raised: the backend reports bad
        credentials as HTTP 401 with a JSON message, and callers need that text.

        Raises:
            TransportError: on any httpx failure, or when the body is not a
                JSON object.
        """
        try:
            resp = await self._client.post(path, json=body)
        except httpx.HTTPError as e:
            logger.warning("POST %s failed: %s", path, e)
            raise TransportError(str(e) or e.__class__.__name__) from e

        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning("POST %s returned a non-JSON body (status %s)", path, resp.status_code)
            raise TransportError(INVALID_RESPONSE) from e

        if not isinstance(payload, dict):
            logger.warning("POST %s returned %s instead of an object", path, type(payload).__name__)
            raise TransportError(INVALID_RESPONSE)

        logger.debug("POST %s -> %s", path, resp.status_code)
        return BackendReply(status_code=resp.status_code, payload=payload)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
