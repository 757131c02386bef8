"""Connection helper shared by the postgres store and the migration runner."""

from __future__ import annotations

import logging
import os

import psycopg
from psycopg import Connection

from citegraph.exceptions import ConfigError, DatabaseError

logger = logging.getLogger(__name__)

DSN_ENV_VAR = "CITEGRAPH_DB_DSN"


def resolve_dsn(dsn: str | None = None) -> str:
    """Return ``dsn`` or the value of ``CITEGRAPH_DB_DSN``; raise ``ConfigError`` if neither is set."""

    resolved = dsn or os.getenv(DSN_ENV_VAR)
    if not resolved:
        raise ConfigError(f"No PostgreSQL DSN given; pass one or set {DSN_ENV_VAR}")
    return resolved


def get_connection(dsn: str | None = None) -> Connection:
    try:
        return psycopg.connect(resolve_dsn(dsn))
    except psycopg.Error as exc:
        logger.error("PostgreSQL connection failed: %s", exc)
        raise DatabaseError(f"Could not connect to PostgreSQL: {exc}") from exc
