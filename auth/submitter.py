"""
auth/submitter.py -- CredentialSubmitter: primary email/password sign-in.

The sign-in endpoint answers in one of three shapes:
  {ok: false, error}                  -> Failure (rejection)
  {ok: true, requiresMFA: true}       -> MFARequired, always the e-mail channel;
                                         the backend has already sent the link
  {ok: true, requiresMFA: false, staff} -> Success

interpret_signin_reply() is shared with auth/federated.py so both entry points
produce identical outcomes for identical replies.

Nothing raises past submit(): transport problems come back as Failure too.
"""

from __future__ import annotations

import logging

from auth.challenge import parse_subject
from core.config import get_settings
from core.http import BackendClient, BackendReply, TransportError
from core.models import (
    AuthOutcome,
    Channel,
    Credentials,
    Failure,
    FailureKind,
    MFAChallenge,
    MFARequired,
    SubjectRef,
    Success,
)

logger = logging.getLogger("authflow.auth.submitter")

LOGIN_FAILED = "Login failed"
GENERIC_ERROR = "An error occurred"


def server_message(payload: dict, default: str, *keys: str) -> str:
    """Return the first non-empty string under keys, else default."""
    for key in keys:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
        # NestJS validation errors arrive as {message: [..]}
        if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
            return "; ".join(value)
    return default


def interpret_signin_reply(reply: BackendReply, default_reason: str = LOGIN_FAILED) -> AuthOutcome:
    payload = reply.payload
    if not reply.is_success_status or payload.get("ok") is not True:
        return Failure(server_message(payload, default_reason, "error", "message"), FailureKind.rejection)

    if payload.get("requiresMFA") is True:
        # The reply may name the principal; if it does not, the e-mail link
        # carries it instead and the challenge stays anonymous.
        subject = parse_subject(payload)
        return MFARequired(
            MFAChallenge(
                channel=Channel.email,
                subject=subject if isinstance(subject, SubjectRef) else None,
            )
        )

    profile = payload.get("staff")
    if not isinstance(profile, dict):
        return Failure(server_message(payload, default_reason, "error", "message"), FailureKind.rejection)
    return Success(profile)


class CredentialSubmitter:
    def __init__(self, client: BackendClient, path: str | None = None) -> None:
        self._client = client
        self._path = path or get_settings().signin_path

    async def submit(self, credentials: Credentials) -> AuthOutcome:
        """Send credentials once and classify the reply.

        Credentials are assumed to be shape-validated by the form layer.
        """
        try:
            reply = await self._client.post_json(self._path, credentials.as_payload())
        except TransportError as e:
            return Failure(str(e) or GENERIC_ERROR, FailureKind.transport)

        outcome = interpret_signin_reply(reply)
        if isinstance(outcome, Failure):
            logger.warning("Sign-in rejected (status %s): %s", reply.status_code, outcome.reason)
        elif isinstance(outcome, MFARequired):
            logger.info("Sign-in requires e-mail verification")
        return outcome
