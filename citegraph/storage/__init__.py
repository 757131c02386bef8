"""Network store implementations."""

from __future__ import annotations

from citegraph.config import CitegraphConfig
from citegraph.storage.base import NetworkStore
from citegraph.storage.memory import InMemoryNetworkStore


def build_store(config: CitegraphConfig) -> NetworkStore:
    """Return the store selected by ``config.store_backend``."""

    if config.store_backend == "postgres":
        from citegraph.storage.postgres import PostgresNetworkStore

        return PostgresNetworkStore(config.db_dsn)
    return InMemoryNetworkStore()


__all__ = ["InMemoryNetworkStore", "NetworkStore", "build_store"]
