"""
auth/sms.py -- SMSCodeVerifier: checks a 6-digit SMS code with the backend.

The code's shape is checked locally first; a malformed code never costs a
request. Each verify() call is independent -- retries, lockout and attempt
counting belong to the backend.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.submitter import server_message
from core.config import get_settings
from core.http import BackendClient, TransportError
from core.models import INVALID_CODE, SMS_CODE_PATTERN, AuthOutcome, Failure, FailureKind, SubjectRef, Success

logger = logging.getLogger("authflow.auth.sms")

VERIFICATION_FAILED = "Verification failed"
VERIFICATION_ERROR = "Verification error"


def normalize_code(raw: Optional[str]) -> Optional[str]:
    """Return the stripped code when it is exactly six ASCII digits, else None."""
    if raw is None:
        return None
    code = raw.strip()
    return code if SMS_CODE_PATTERN.match(code) else None


class SMSCodeVerifier:
    def __init__(self, client: BackendClient, path: Optional[str] = None) -> None:
        self._client = client
        self._path = path or get_settings().sms_verify_path

    async def verify(self, raw_code: Optional[str], subject: SubjectRef) -> AuthOutcome:
        code = normalize_code(raw_code)
        if code is None:
            return Failure(INVALID_CODE, FailureKind.validation)

        body = {"code": code, **subject.as_payload()}
        try:
            reply = await self._client.post_json(self._path, body)
        except TransportError as e:
            return Failure(str(e) or VERIFICATION_ERROR, FailureKind.transport)

        payload = reply.payload
        profile = payload.get("staff")
        if reply.is_success_status and payload.get("ok") is True and isinstance(profile, dict):
            logger.info("SMS code accepted for %s subject", subject.kind.value)
            return Success(profile)

        reason = server_message(payload, VERIFICATION_FAILED, "message", "error")
        logger.warning("SMS code rejected (status %s): %s", reply.status_code, reason)
        return Failure(reason, FailureKind.rejection)
