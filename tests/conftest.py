"""
tests/conftest.py -- Shared fixtures for authflow tests.

This module provides:
  - stub_backend: a FastAPI app standing in for the real auth backend. Each
    endpoint replies with whatever the test queued on it and records the
    request bodies it received.
  - asgi_client: a BackendClient wired to stub_backend through
    httpx.ASGITransport -- real HTTP semantics, no sockets.
  - mock_client(): builds a BackendClient over httpx.MockTransport for tests
    that need to fake low-level failures (connection errors, non-JSON bodies).
  - store: an in-memory SessionStore wrapped in a MagicMock so login() calls
    can be counted.

Async code is driven with asyncio.run() from plain sync tests.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.http import BackendClient
from session.store import MemorySessionStore

BASE_URL = "http://backend.test"

# ---------------------------------------------------------------------------
# Stub backend
# ---------------------------------------------------------------------------


class StubBackend:
    """FastAPI app whose replies are scripted per endpoint path.

    queue(path, body, status=200) appends a reply; the last queued reply is
    reused once the queue drains so a single queue() call covers retries.
    """

    def __init__(self) -> None:
        self.app = FastAPI()
        self.replies: dict[str, list[tuple[int, Any]]] = {}
        self.requests: list[tuple[str, dict]] = []

        cfg = get_settings()
        for path in (cfg.signin_path, cfg.federated_signin_path, cfg.sms_verify_path):
            self.app.add_api_route(path, self._handler(path), methods=["POST"])

    def _handler(self, path: str) -> Callable:
        async def handle(request: Request) -> JSONResponse:
            self.requests.append((path, await request.json()))
            queued = self.replies.get(path) or [(500, {"ok": False, "error": "nothing queued"})]
            status, body = queued.pop(0) if len(queued) > 1 else queued[0]
            return JSONResponse(status_code=status, content=body)

        return handle

    def queue(self, path: str, body: Any, status: int = 200) -> None:
        self.replies.setdefault(path, []).append((status, body))

    def calls_to(self, path: str) -> list[dict]:
        return [body for p, body in self.requests if p == path]


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Pin the backend URL and reset the settings singleton around every test."""
    monkeypatch.setenv("AUTHFLOW_API_BASE_URL", BASE_URL)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def stub_backend() -> StubBackend:
    return StubBackend()


@pytest.fixture
def asgi_client(stub_backend: StubBackend) -> Generator[BackendClient, None, None]:
    client = BackendClient(BASE_URL, transport=httpx.ASGITransport(app=stub_backend.app))
    yield client
    asyncio.run(client.aclose())


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> BackendClient:
    """BackendClient whose every request is answered by handler."""
    return BackendClient(BASE_URL, transport=httpx.MockTransport(handler))


@pytest.fixture
def store() -> MagicMock:
    """MemorySessionStore with call tracking on login/current_profile/logout."""
    return MagicMock(wraps=MemorySessionStore())
