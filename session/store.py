"""
session/store.py -- Where an authenticated profile lives after the flow ends.

The auth flow never reaches for a global "current user". It is handed a
SessionStore and calls login(profile) exactly once per successful sign-in.

Implementations:
    MemorySessionStore  -- process-local; tests and embedding.
    SQLiteSessionStore  -- one-row table, survives restarts (used by the CLI).

Usage:
    store = SQLiteSessionStore(Path("~/.authflow/session.db").expanduser())
    store.login({"staff_id": 1, "email": "a@b.com"})
    store.current_profile()   # returns dict or None
    store.logout()
"""

import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Optional, Protocol

logger = logging.getLogger("authflow.session")

_DDL = """
CREATE TABLE IF NOT EXISTS session (
    slot        INTEGER PRIMARY KEY CHECK (slot = 1),
    profile     TEXT NOT NULL,
    created_at  REAL NOT NULL
);
"""


class SessionStore(Protocol):
    def login(self, profile: dict[str, Any]) -> None: ...

    def current_profile(self) -> Optional[dict[str, Any]]: ...

    def logout(self) -> None: ...


class MemorySessionStore:
    def __init__(self) -> None:
        self._profile: Optional[dict[str, Any]] = None

    def login(self, profile: dict[str, Any]) -> None:
        self._profile = dict(profile)

    def current_profile(self) -> Optional[dict[str, Any]]:
        return dict(self._profile) if self._profile is not None else None

    def logout(self) -> None:
        self._profile = None


class SQLiteSessionStore:
    """Single-slot profile store. login() overwrites, so repeating it is harmless."""

    def __init__(self, db_path: Path) -> None:
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute(_DDL)
        self._conn.commit()

    def login(self, profile: dict[str, Any]) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO session (slot, profile, created_at) VALUES (1, ?, ?)",
            (json.dumps(profile), time.time()),
        )
        self._conn.commit()

    def current_profile(self) -> Optional[dict[str, Any]]:
        row = self._conn.execute("SELECT profile FROM session WHERE slot = 1").fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError:
            # A corrupt row is treated as logged out and cleared.
            logger.warning("Discarding unreadable stored session")
            self.logout()
            return None

    def logout(self) -> None:
        self._conn.execute("DELETE FROM session")
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
