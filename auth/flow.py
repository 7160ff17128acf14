"""
auth/flow.py -- AuthFlowController: the sign-in state machine.

Phases and the operations allowed from each:

    idle / failed      submit(), submit_federated(), resume_sms()
    mfa_pending_sms    verify()
    any phase          reset()

    idle --submit--> submitting --Success--------> authenticated
                                --MFARequired----> mfa_pending_email | mfa_pending_sms
                                --Failure--------> failed
    mfa_pending_sms --verify--> verifying --Success--> authenticated
                                          --Failure--> mfa_pending_sms (challenge kept)

Calling an operation from a phase that does not allow it raises FlowStateError.
That gate is also what keeps one request in flight per instance -- there is
no lock.

Session establishment: session_store.login(profile) is called exactly once,
on the transition into authenticated, before the phase changes.

Abandonment: reset() and dispose() bump a generation counter. A request that
was in flight under an older generation still completes, but its outcome is
dropped instead of being applied to a flow that has moved on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Optional, Union

from auth.challenge import MFAChallengeRouter
from auth.federated import FederatedLoginAdapter
from auth.sms import SMSCodeVerifier, normalize_code
from auth.submitter import CredentialSubmitter
from core.models import (
    INVALID_CODE,
    AuthOutcome,
    Credentials,
    Failure,
    FailureKind,
    FlowPhase,
    FlowState,
    MFAChallenge,
    MFARequired,
    Success,
)
from session.store import SessionStore

logger = logging.getLogger("authflow.auth.flow")

SESSION_FAILED = "Could not establish session"

Listener = Callable[[FlowState], None]


class FlowStateError(RuntimeError):
    """An operation was invoked from a phase that does not allow it."""


class FlowDisposedError(FlowStateError):
    """The flow instance was disposed and accepts no further operations."""


class AuthFlowController:
    def __init__(
        self,
        submitter: CredentialSubmitter,
        verifier: SMSCodeVerifier,
        session_store: SessionStore,
        federated: Optional[FederatedLoginAdapter] = None,
        router: Optional[MFAChallengeRouter] = None,
    ) -> None:
        self._submitter = submitter
        self._verifier = verifier
        self._session_store = session_store
        self._federated = federated
        self._router = router or MFAChallengeRouter()

        self._state = FlowState()
        self._generation = 0
        self._disposed = False
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def phase(self) -> FlowPhase:
        return self._state.phase

    @property
    def error(self) -> Optional[Failure]:
        return self._state.error

    @property
    def challenge(self) -> Optional[MFAChallenge]:
        return self._state.challenge

    @property
    def disposed(self) -> bool:
        return self._disposed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register listener for every new FlowState. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Primary sign-in
    # ------------------------------------------------------------------

    async def submit(self, credentials: Credentials) -> FlowState:
        self._require(FlowPhase.idle, FlowPhase.failed)
        generation = self._begin(FlowState(phase=FlowPhase.submitting))
        outcome = await self._submitter.submit(credentials)
        return self._settle_primary(generation, outcome)

    async def submit_federated(self, token: Optional[str] = None) -> FlowState:
        """Sign in through the identity provider.

        With token=None the adapter's widget is prompted; a token obtained
        elsewhere can be passed directly instead.
        """
        self._require(FlowPhase.idle, FlowPhase.failed)
        if self._federated is None:
            raise FlowStateError("no federated login adapter configured")
        generation = self._begin(FlowState(phase=FlowPhase.submitting))
        if token is None:
            outcome = await self._federated.authenticate()
        else:
            outcome = await self._federated.exchange(token)
        return self._settle_primary(generation, outcome)

    # ------------------------------------------------------------------
    # SMS second factor
    # ------------------------------------------------------------------

    def resume_sms(self, query: Union[str, Mapping[str, Any]]) -> FlowState:
        """Enter SMS verification from a link carrying staffId or adminId."""
        self._require(FlowPhase.idle, FlowPhase.failed)
        result = self._router.resume(query)
        if isinstance(result, Failure):
            self._transition(FlowState(phase=FlowPhase.failed, error=result))
        else:
            self._transition(FlowState(phase=FlowPhase.mfa_pending_sms, challenge=result))
        return self._state

    async def verify(self, code: Optional[str]) -> FlowState:
        self._require(FlowPhase.mfa_pending_sms)
        challenge = self._state.challenge
        if challenge is None or challenge.subject is None:
            raise FlowStateError("no SMS challenge with a subject is live")

        # A malformed code stays on the code prompt without passing through
        # verifying.
        if normalize_code(code) is None:
            self._transition(
                FlowState(
                    phase=FlowPhase.mfa_pending_sms,
                    challenge=challenge,
                    error=Failure(INVALID_CODE, FailureKind.validation),
                )
            )
            return self._state

        generation = self._begin(FlowState(phase=FlowPhase.verifying, challenge=challenge))
        outcome = await self._verifier.verify(code, challenge.subject)
        if self._is_stale(generation):
            logger.debug("Dropping verification result for an abandoned flow")
            return self._state

        if isinstance(outcome, Success):
            self._authenticate(outcome.profile)
        else:
            error = outcome if isinstance(outcome, Failure) else Failure("Verification failed")
            self._transition(FlowState(phase=FlowPhase.mfa_pending_sms, challenge=challenge, error=error))
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> FlowState:
        """Back to idle from anywhere, discarding any live challenge."""
        self._check_alive()
        self._generation += 1
        self._transition(FlowState())
        return self._state

    def dispose(self) -> None:
        """Abandon this instance. Results still in flight will be ignored."""
        self._generation += 1
        self._disposed = True
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_alive(self) -> None:
        if self._disposed:
            raise FlowDisposedError("flow instance has been disposed")

    def _require(self, *allowed: FlowPhase) -> None:
        self._check_alive()
        if self._state.phase not in allowed:
            raise FlowStateError(
                f"operation not allowed in phase {self._state.phase.value!r} "
                f"(allowed: {', '.join(p.value for p in allowed)})"
            )

    def _begin(self, state: FlowState) -> int:
        # Captured before listeners run: a listener may reset() the flow.
        generation = self._generation
        self._transition(state)
        return generation

    def _is_stale(self, generation: int) -> bool:
        return self._disposed or generation != self._generation

    def _settle_primary(self, generation: int, outcome: AuthOutcome) -> FlowState:
        if self._is_stale(generation):
            logger.debug("Dropping sign-in result for an abandoned flow")
            return self._state

        if isinstance(outcome, Success):
            self._authenticate(outcome.profile)
        elif isinstance(outcome, MFARequired):
            routed = self._router.route(outcome)
            if isinstance(routed, Failure):
                self._transition(FlowState(phase=FlowPhase.failed, error=routed))
            else:
                self._transition(FlowState(phase=routed, challenge=outcome.challenge))
        else:
            self._transition(FlowState(phase=FlowPhase.failed, error=outcome))
        return self._state

    def _authenticate(self, profile: dict[str, Any]) -> None:
        try:
            self._session_store.login(profile)
        except Exception:
            logger.exception("Session store rejected the authenticated profile")
            self._transition(
                FlowState(phase=FlowPhase.failed, error=Failure(SESSION_FAILED, FailureKind.session))
            )
            raise
        logger.info("Authentication complete")
        self._transition(FlowState(phase=FlowPhase.authenticated, profile=profile))

    def _transition(self, state: FlowState) -> None:
        if self._disposed:
            return
        previous = self._state.phase
        self._state = state
        logger.debug("Flow phase %s -> %s", previous.value, state.phase.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Flow state listener failed")
