"""PostgreSQL-backed network store."""

from __future__ import annotations

from typing import Any, List, Optional

from psycopg.rows import dict_row
from psycopg.types.json import Json

from citegraph.exceptions import DatabaseError
from citegraph.models import CitationNetwork, PaperRecord
from citegraph.storage.base import NetworkStore, generate_network_id
from citegraph.storage.db import get_connection

_NETWORK_COLUMNS = """
    id::text AS id, root_doi, depth, nodes, edges, metadata, created_at
"""

_PAPER_COLUMNS = """
    id, pmid, doi, title, authors, journal, year, abstract, citation_count, created_at
"""


class PostgresNetworkStore(NetworkStore):
    """Durable store keeping networks and papers as rows with JSONB payloads.

    A short-lived connection is opened per call so the store can be used from
    worker threads without sharing connection state.
    """

    def __init__(self, dsn: str | None = None) -> None:
        self.dsn = dsn

    def get_by_root_and_depth(self, root_doi: str, depth: int) -> Optional[CitationNetwork]:
        row = self._fetch_one(
            f"SELECT {_NETWORK_COLUMNS} FROM citation_networks WHERE root_doi = %s AND depth = %s",
            (root_doi, depth),
        )
        return CitationNetwork.model_validate(row) if row else None

    def save(self, network: CitationNetwork) -> CitationNetwork:
        sql = f"""
            INSERT INTO citation_networks (id, root_doi, depth, nodes, edges, metadata)
            VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (root_doi, depth) DO UPDATE
                SET nodes = EXCLUDED.nodes,
                    edges = EXCLUDED.edges,
                    metadata = EXCLUDED.metadata
            RETURNING {_NETWORK_COLUMNS}
        """
        params = (
            network.id or generate_network_id(),
            network.root_doi,
            network.depth,
            Json([node.model_dump(mode="json") for node in network.nodes]),
            Json([edge.model_dump(mode="json") for edge in network.edges]),
            Json(network.metadata.model_dump(mode="json")) if network.metadata else None,
        )
        row = self._fetch_one(sql, params, write=True)
        if row is None:  # pragma: no cover - RETURNING always yields a row
            raise DatabaseError("Network insert returned no row")
        return CitationNetwork.model_validate(row)

    def list_networks(self, limit: int = 50) -> List[CitationNetwork]:
        with self._connect() as conn, conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"SELECT {_NETWORK_COLUMNS} FROM citation_networks ORDER BY created_at DESC LIMIT %s",
                (limit,),
            )
            return [CitationNetwork.model_validate(row) for row in cur.fetchall()]

    def get_paper_by_id(self, paper_id: str) -> Optional[PaperRecord]:
        row = self._fetch_one(f"SELECT {_PAPER_COLUMNS} FROM papers WHERE id = %s", (paper_id,))
        return PaperRecord.model_validate(row) if row else None

    def save_paper(self, record: PaperRecord) -> PaperRecord:
        sql = f"""
            INSERT INTO papers (id, pmid, doi, title, authors, journal, year, abstract, citation_count)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (id) DO NOTHING
            RETURNING {_PAPER_COLUMNS}
        """
        params = (
            record.id,
            record.pmid,
            record.doi,
            record.title,
            Json(list(record.authors)),
            record.journal,
            record.year,
            record.abstract,
            record.citation_count,
        )
        row = self._fetch_one(sql, params, write=True)
        if row is None:
            existing = self.get_paper_by_id(record.id)
            if existing is None:  # pragma: no cover - concurrent delete
                raise DatabaseError(f"Paper {record.id} vanished during insert")
            return existing
        return PaperRecord.model_validate(row)

    def _connect(self):
        return get_connection(self.dsn)

    def _fetch_one(self, sql: str, params: tuple[Any, ...], *, write: bool = False) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
            if write:
                conn.commit()
        return row
