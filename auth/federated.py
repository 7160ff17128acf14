"""
auth/federated.py -- FederatedLoginAdapter: third-party identity sign-in.

Identity provider widgets (Google Sign-In and friends) are callback based:
you hand them a success callback and an error callback and wait. The rest of
this project only knows how to await an AuthOutcome, so the adapter bridges
the two with an asyncio.Future:

    outcome = await adapter.authenticate()

Once a credential token arrives it is forwarded to the federated sign-in
endpoint and the reply goes through the same interpret_signin_reply() as the
password path. A widget failure never reaches the network.

Callbacks may fire from another thread (native widgets, test doubles), so the
future is always resolved through loop.call_soon_threadsafe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional, Protocol

from auth.submitter import GENERIC_ERROR, interpret_signin_reply
from core.config import get_settings
from core.http import BackendClient, TransportError
from core.models import FEDERATED_FAILED, AuthOutcome, Failure, FailureKind, MFARequired

logger = logging.getLogger("authflow.auth.federated")


class IdentityWidget(Protocol):
    """Anything that eventually calls exactly one of the two callbacks."""

    def prompt(
        self,
        on_credential: Callable[[str], None],
        on_error: Callable[[Optional[BaseException]], None],
    ) -> None: ...


class FederatedLoginAdapter:
    def __init__(
        self,
        client: BackendClient,
        widget: Optional[IdentityWidget] = None,
        path: Optional[str] = None,
    ) -> None:
        self._client = client
        self._widget = widget
        self._path = path or get_settings().federated_signin_path

    async def authenticate(self) -> AuthOutcome:
        """Run the widget, then exchange its token with the backend."""
        if self._widget is None:
            logger.warning("Federated sign-in requested but no identity widget is configured")
            return Failure(FEDERATED_FAILED, FailureKind.provider)

        token = await self._obtain_token(self._widget)
        if token is None:
            return Failure(FEDERATED_FAILED, FailureKind.provider)
        return await self.exchange(token)

    async def exchange(self, token: str) -> AuthOutcome:
        """Forward an already-obtained provider token to the backend."""
        if not token or not token.strip():
            return Failure(FEDERATED_FAILED, FailureKind.provider)

        try:
            reply = await self._client.post_json(self._path, {"credential": token})
        except TransportError as e:
            return Failure(str(e) or GENERIC_ERROR, FailureKind.transport)

        outcome = interpret_signin_reply(reply)
        if isinstance(outcome, Failure):
            logger.warning("Federated sign-in rejected (status %s): %s", reply.status_code, outcome.reason)
        elif isinstance(outcome, MFARequired):
            logger.info("Federated sign-in requires e-mail verification")
        return outcome

    async def _obtain_token(self, widget: IdentityWidget) -> Optional[str]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Optional[str]] = loop.create_future()

        def _settle(value: Optional[str]) -> None:
            # Widgets have been known to call back twice; only the first wins.
            if not future.done():
                future.set_result(value)

        def on_credential(token: str) -> None:
            loop.call_soon_threadsafe(_settle, token or None)

        def on_error(error: Optional[BaseException] = None) -> None:
            logger.warning("Identity provider failed: %s", error or "no details")
            loop.call_soon_threadsafe(_settle, None)

        try:
            widget.prompt(on_credential, on_error)
        except Exception as e:
            logger.warning("Identity provider raised before yielding a token: %s", e)
            return None
        return await future
