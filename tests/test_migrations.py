import pytest

from citegraph.exceptions import ConfigError, DatabaseError
from citegraph.storage.db import resolve_dsn
from citegraph.storage.migrations import MIGRATIONS_PATH, load_migrations, pending_migrations


class _StubCursor:
    def __init__(self, rows):
        self._rows = rows

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.sql = sql

    def fetchall(self):
        return list(self._rows)


class _StubConnection:
    def __init__(self, rows):
        self._rows = rows

    def cursor(self):
        return _StubCursor(self._rows)


def test_bundled_migrations_are_ordered():
    migrations = load_migrations()

    assert [m.name for m in migrations][0] == "001_initial_schema.sql"
    assert "citation_networks" in migrations[0].sql
    assert MIGRATIONS_PATH.name == "sql"


def test_pending_skips_applied_files(tmp_path):
    (tmp_path / "002_second.sql").write_text("SELECT 2;")
    (tmp_path / "001_first.sql").write_text("SELECT 1;")
    migrations = load_migrations(tmp_path)
    conn = _StubConnection([("001_first.sql", migrations[0].checksum)])

    assert [m.name for m in pending_migrations(conn, migrations)] == ["002_second.sql"]


def test_edited_migration_is_reported(tmp_path):
    (tmp_path / "001_first.sql").write_text("SELECT 1;")
    migrations = load_migrations(tmp_path)
    conn = _StubConnection([("001_first.sql", "stale")])

    with pytest.raises(DatabaseError):
        pending_migrations(conn, migrations)


def test_resolve_dsn(monkeypatch):
    monkeypatch.delenv("CITEGRAPH_DB_DSN", raising=False)
    with pytest.raises(ConfigError):
        resolve_dsn(None)

    monkeypatch.setenv("CITEGRAPH_DB_DSN", "postgresql://env")
    assert resolve_dsn(None) == "postgresql://env"
    assert resolve_dsn("postgresql://explicit") == "postgresql://explicit"
