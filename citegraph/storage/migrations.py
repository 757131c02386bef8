"""Ordered SQL migrations for the postgres network store.

Files in ``citegraph/storage/sql`` are applied in filename order, each in its
own transaction. Applied files are recorded in ``citegraph_migrations`` with a
checksum; editing a file after it was applied is reported as an error instead
of being silently ignored. A transaction-scoped advisory lock serialises
concurrent runners.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

from psycopg import Connection

from citegraph.exceptions import DatabaseError
from citegraph.storage.db import get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_PATH = Path(__file__).resolve().parent / "sql"

_LOCK_KEY = 0x43495445  # "CITE"

_LEDGER_DDL = """
    CREATE TABLE IF NOT EXISTS citegraph_migrations (
        filename TEXT PRIMARY KEY,
        checksum TEXT NOT NULL,
        applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


@dataclass(frozen=True)
class Migration:
    path: Path
    sql: str

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def checksum(self) -> str:
        return hashlib.sha256(self.sql.encode("utf-8")).hexdigest()


def load_migrations(migrations_dir: Path = MIGRATIONS_PATH) -> List[Migration]:
    return [Migration(path, path.read_text(encoding="utf-8")) for path in sorted(migrations_dir.glob("*.sql"))]


def _applied_checksums(conn: Connection) -> Dict[str, str]:
    with conn.cursor() as cur:
        cur.execute("SELECT filename, checksum FROM citegraph_migrations")
        return {filename: checksum for filename, checksum in cur.fetchall()}


def pending_migrations(conn: Connection, migrations: List[Migration]) -> List[Migration]:
    """Return migrations not yet applied; raise ``DatabaseError`` on a changed file."""

    applied = _applied_checksums(conn)
    pending: List[Migration] = []
    for migration in migrations:
        recorded = applied.get(migration.name)
        if recorded is None:
            pending.append(migration)
        elif recorded != migration.checksum:
            raise DatabaseError(f"Migration {migration.name} changed after it was applied")
    return pending


def run_migrations(dsn: str | None, migrations_dir: Path = MIGRATIONS_PATH) -> List[str]:
    """Apply pending migrations and return their filenames in order."""

    migrations = load_migrations(migrations_dir)
    applied: List[str] = []
    with get_connection(dsn) as conn:
        with conn.transaction():
            conn.execute("SELECT pg_advisory_xact_lock(%s)", (_LOCK_KEY,))
            conn.execute(_LEDGER_DDL)
        for migration in pending_migrations(conn, migrations):
            with conn.transaction():
                conn.execute("SELECT pg_advisory_xact_lock(%s)", (_LOCK_KEY,))
                if migration.name in _applied_checksums(conn):
                    # another runner got here first
                    continue
                conn.execute(migration.sql)
                conn.execute(
                    "INSERT INTO citegraph_migrations (filename, checksum) VALUES (%s, %s)",
                    (migration.name, migration.checksum),
                )
            logger.info("Applied migration %s", migration.name)
            applied.append(migration.name)
    return applied
