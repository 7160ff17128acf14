"""
core/models.py -- Domain dataclasses for the authentication flow.

Pattern: Data class (pure data container, near-zero logic). Components in
auth/ do the work; these types only own the shape of what moves between them.
All types are frozen -- a SubjectRef or MFAChallenge must not change after it
has been handed to the controller.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# ASCII digits only. \d would also accept other Unicode decimal digits.
SMS_CODE_PATTERN = re.compile(r"^[0-9]{6}$")

MISSING_SUBJECT = "missing subject identifier"
AMBIGUOUS_SUBJECT = "ambiguous subject identifier"
FEDERATED_FAILED = "federated sign-in failed"
INVALID_CODE = "Enter a 6-digit code"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SubjectKind(str, Enum):
    staff = "staff"
    admin = "admin"


class Channel(str, Enum):
    email = "email"
    sms = "sms"


class FailureKind(str, Enum):
    validation = "validation"  # local check, no request sent
    rejection = "rejection"  # server replied not-ok
    transport = "transport"  # request never produced a usable reply
    provider = "provider"  # identity widget failed before yielding a token
    session = "session"  # session store refused the profile


class FlowPhase(str, Enum):
    idle = "idle"
    submitting = "submitting"
    mfa_pending_email = "mfa_pending_email"
    mfa_pending_sms = "mfa_pending_sms"
    verifying = "verifying"
    authenticated = "authenticated"
    failed = "failed"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credentials:
    email: str
    password: str = field(repr=False)

    def as_payload(self) -> dict[str, str]:
        return {"email": self.email, "password": self.password}


@dataclass(frozen=True)
class SubjectRef:
    """The principal an MFA challenge belongs to.

    The backend keeps staff and admins in separate tables, so the kind travels
    with the id all the way to the verification request.
    """

    kind: SubjectKind
    id: str

    def as_payload(self) -> dict[str, str]:
        key = "staffId" if self.kind is SubjectKind.staff else "adminId"
        return {key: self.id}


@dataclass(frozen=True)
class MFAChallenge:
    channel: Channel
    subject: Optional[SubjectRef] = None  # required for sms, optional for email


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    profile: dict[str, Any]


@dataclass(frozen=True)
class MFARequired:
    challenge: MFAChallenge


@dataclass(frozen=True)
class Failure:
    reason: str
    kind: FailureKind = FailureKind.rejection


AuthOutcome = Union[Success, MFARequired, Failure]


# ---------------------------------------------------------------------------
# Flow state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FlowState:
    """Snapshot of a flow instance. Everything a view renders derives from this."""

    phase: FlowPhase = FlowPhase.idle
    challenge: Optional[MFAChallenge] = None
    error: Optional[Failure] = None
    profile: Optional[dict[str, Any]] = None
