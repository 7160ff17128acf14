"""
auth/challenge.py -- MFAChallengeRouter: decides how a second factor is presented.

Two entry points:
  route()  -- an MFARequired outcome from a sign-in call becomes a flow phase.
              E-mail challenges park the flow until the user follows the link;
              SMS challenges ask for a code.
  resume() -- the SMS page can be opened directly from a link carrying
              ?staffId=... or ?adminId=.... Exactly one must be present. The
              subject is taken from those parameters and nothing else.

No request is ever sent from here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Union
from urllib.parse import parse_qs, urlsplit

from core.models import (
    AMBIGUOUS_SUBJECT,
    MISSING_SUBJECT,
    Channel,
    Failure,
    FailureKind,
    FlowPhase,
    MFAChallenge,
    MFARequired,
    SubjectKind,
    SubjectRef,
)

logger = logging.getLogger("authflow.auth.challenge")

_SUBJECT_PARAMS = (("staffId", SubjectKind.staff), ("adminId", SubjectKind.admin))


def _normalize_query(query: Union[str, Mapping[str, object]]) -> dict[str, str]:
    """Flatten a URL, raw query string, or mapping into {name: first value}."""
    if isinstance(query, str):
        raw = urlsplit(query).query if ("?" in query or "://" in query) else query
        return {k: v[0] for k, v in parse_qs(raw.lstrip("?")).items() if v}

    flat: dict[str, str] = {}
    for key, value in query.items():
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value is not None:
            flat[key] = str(value)
    return flat


def parse_subject(params: Mapping[str, object]) -> Union[SubjectRef, Failure]:
    """Build a SubjectRef from staffId/adminId, or explain why not.

    Blank values count as absent. Both present is rejected rather than guessed.
    """
    found = []
    for name, kind in _SUBJECT_PARAMS:
        value = params.get(name)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            found.append(SubjectRef(kind=kind, id=text))

    if not found:
        return Failure(MISSING_SUBJECT, FailureKind.validation)
    if len(found) > 1:
        return Failure(AMBIGUOUS_SUBJECT, FailureKind.validation)
    return found[0]


class MFAChallengeRouter:
    def route(self, outcome: MFARequired) -> Union[FlowPhase, Failure]:
        """Map an MFA-required outcome to the phase the flow should enter.

        An SMS challenge without a subject cannot be verified, so it is
        reported as a configuration failure instead of a phase.
        """
        challenge = outcome.challenge
        if challenge.channel is Channel.email:
            return FlowPhase.mfa_pending_email
        if challenge.subject is None:
            logger.warning("SMS challenge arrived without a subject identifier")
            return Failure(MISSING_SUBJECT, FailureKind.validation)
        return FlowPhase.mfa_pending_sms

    def resume(self, query: Union[str, Mapping[str, object]]) -> Union[MFAChallenge, Failure]:
        """Materialize an SMS challenge from a resumption URL or its parameters."""
        subject = parse_subject(_normalize_query(query))
        if isinstance(subject, Failure):
            logger.warning("Cannot resume SMS verification: %s", subject.reason)
            return subject
        logger.debug("Resuming SMS verification for %s subject", subject.kind.value)
        return MFAChallenge(channel=Channel.sms, subject=subject)
