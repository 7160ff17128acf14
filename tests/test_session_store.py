"""Unit tests for session/store.py -- Memory and SQLite session stores."""

import pytest

from session.store import MemorySessionStore, SQLiteSessionStore


@pytest.fixture
def sqlite_store(tmp_path):
    s = SQLiteSessionStore(tmp_path / "nested" / "session.db")
    yield s
    s.close()


class TestMemorySessionStore:
    def test_login_then_read(self):
        s = MemorySessionStore()
        s.login({"id": 1})
        assert s.current_profile() == {"id": 1}

    def test_returned_profile_is_a_copy(self):
        s = MemorySessionStore()
        s.login({"id": 1})
        s.current_profile()["id"] = 99
        assert s.current_profile() == {"id": 1}

    def test_logout(self):
        s = MemorySessionStore()
        s.login({"id": 1})
        s.logout()
        assert s.current_profile() is None


class TestSQLiteSessionStore:
    def test_empty_store(self, sqlite_store):
        assert sqlite_store.current_profile() is None

    def test_login_overwrites(self, sqlite_store):
        sqlite_store.login({"id": 1})
        sqlite_store.login({"id": 2, "email": "b@c.com"})
        assert sqlite_store.current_profile() == {"id": 2, "email": "b@c.com"}

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "session.db"
        first = SQLiteSessionStore(path)
        first.login({"staff_id": 42})
        first.close()

        second = SQLiteSessionStore(path)
        assert second.current_profile() == {"staff_id": 42}
        second.close()

    def test_logout(self, sqlite_store):
        sqlite_store.login({"id": 1})
        sqlite_store.logout()
        assert sqlite_store.current_profile() is None

    def test_corrupt_row_treated_as_logged_out(self, sqlite_store):
        sqlite_store._conn.execute("INSERT INTO session (slot, profile, created_at) VALUES (1, 'not json', 0)")
        sqlite_store._conn.commit()
        assert sqlite_store.current_profile() is None
        assert sqlite_store._conn.execute("SELECT COUNT(*) FROM session").fetchone()[0] == 0
