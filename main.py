#!/usr/bin/env python3
"""
authflow -- Command-line sign-in against the staff authentication backend.

Usage:
  python main.py login --email a@b.com
  python main.py login --email a@b.com --password 'secret'
  python main.py google --credential <id-token>
  python main.py verify-sms "https://app.example/verify-mfa-sms?staffId=42"
  python main.py verify-sms "adminId=7" --code 123456
  python main.py whoami
  python main.py logout

Environment variables:
  AUTHFLOW_API_BASE_URL      Backend base URL (default http://localhost:3000).
  AUTHFLOW_REQUEST_TIMEOUT   Seconds before a request is abandoned (default: none).
  AUTHFLOW_SESSION_DB_PATH   Where the signed-in profile is kept.

Exit codes: 0 signed in / done, 1 failed, 2 waiting for e-mail verification.
"""

import argparse
import asyncio
import getpass
import json
import logging
import sys
from typing import Optional

import httpx

from auth.federated import FederatedLoginAdapter
from auth.flow import AuthFlowController
from auth.sms import SMSCodeVerifier
from auth.submitter import CredentialSubmitter
from core.config import get_settings
from core.http import BackendClient
from core.models import Credentials, FailureKind, FlowPhase, FlowState
from session.store import SessionStore, SQLiteSessionStore

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_EMAIL_PENDING = 2


def _build_flow(client: BackendClient, store: SessionStore) -> AuthFlowController:
    return AuthFlowController(
        submitter=CredentialSubmitter(client),
        verifier=SMSCodeVerifier(client),
        session_store=store,
        federated=FederatedLoginAdapter(client),
    )


def _report(state: FlowState) -> int:
    """Print the user-facing line for a settled state and pick the exit code."""
    if state.phase is FlowPhase.authenticated:
        profile = state.profile or {}
        who = profile.get("email") or profile.get("staff_id") or profile.get("id") or "unknown"
        print(f"  Signed in as {who}.")
        return EXIT_OK
    if state.phase is FlowPhase.mfa_pending_email:
        print("  Check your e-mail: follow the verification link we sent to finish signing in.")
        return EXIT_EMAIL_PENDING
    reason = state.error.reason if state.error else "Login failed"
    print(f"  [!] {reason}")
    return EXIT_FAILED


async def _login(flow: AuthFlowController, email: str, password: Optional[str]) -> int:
    if password is None:
        password = getpass.getpass("Password: ")
    state = await flow.submit(Credentials(email=email.strip(), password=password))
    return _report(state)


async def _google(flow: AuthFlowController, credential: str) -> int:
    state = await flow.submit_federated(credential)
    return _report(state)


async def _verify_sms(flow: AuthFlowController, link: str, code: Optional[str]) -> int:
    state = flow.resume_sms(link)
    if state.phase is FlowPhase.failed:
        return _report(state)

    # A code given on the command line gets exactly one attempt; interactive
    # entry keeps prompting until success or an empty line.
    interactive = code is None
    while True:
        if interactive:
            code = input("6-digit code (blank to cancel): ").strip()
            if not code:
                flow.reset()
                print("  Cancelled.")
                return EXIT_FAILED
        state = await flow.verify(code)
        if state.phase is FlowPhase.authenticated:
            return _report(state)
        print(f"  [!] {state.error.reason if state.error else 'Verification failed'}")
        if not interactive:
            return EXIT_FAILED


async def run(
    args: argparse.Namespace,
    store: SessionStore,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Execute one parsed command. Split from main() so tests can inject a transport."""
    if args.command == "whoami":
        profile = store.current_profile()
        if profile is None:
            print("  Not signed in.")
            return EXIT_FAILED
        print(json.dumps(profile, indent=2, default=str))
        return EXIT_OK

    if args.command == "logout":
        store.logout()
        print("  Signed out.")
        return EXIT_OK

    async with BackendClient.from_settings(transport=transport) as client:
        flow = _build_flow(client, store)
        try:
            if args.command == "login":
                return await _login(flow, args.email, args.password)
            if args.command == "google":
                return await _google(flow, args.credential)
            return await _verify_sms(flow, args.link, args.code)
        except Exception:
            if flow.error is None or flow.error.kind is not FailureKind.session:
                raise
            return _report(flow.state)
        finally:
            flow.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authflow",
        description="Sign in to the staff backend, including MFA verification.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log requests and phase changes")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in with email and password")
    login.add_argument("--email", required=True)
    login.add_argument("--password", default=None, help="Prompted for when omitted")

    google = sub.add_parser("google", help="Sign in with a federated identity token")
    google.add_argument("--credential", required=True, metavar="TOKEN")

    verify = sub.add_parser("verify-sms", help="Finish sign-in with an SMS code")
    verify.add_argument("link", metavar="URL_OR_QUERY", help="Verification link or 'staffId=..'/'adminId=..'")
    verify.add_argument("--code", default=None, help="Prompted for when omitted")

    sub.add_parser("whoami", help="Show the signed-in profile")
    sub.add_parser("logout", help="Forget the signed-in profile")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else cfg.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = SQLiteSessionStore(cfg.session_db_path.expanduser())
    try:
        return asyncio.run(run(args, store))
    except KeyboardInterrupt:
        print("\n  Cancelled.")
        return EXIT_FAILED
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
