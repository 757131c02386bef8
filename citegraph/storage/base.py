"""Storage interface for generated networks and paper records."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from citegraph.models import CitationNetwork, PaperRecord


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_network_id() -> str:
    return str(uuid.uuid4())


class NetworkStore(ABC):
    """Persist and retrieve citation networks and the papers they contain.

    Implementations are blocking; async callers run them through
    :func:`asyncio.to_thread`.
    """

    @abstractmethod
    def get_by_root_and_depth(self, root_doi: str, depth: int) -> Optional[CitationNetwork]:
        """Return the stored network for ``(root_doi, depth)``, if any."""

    @abstractmethod
    def save(self, network: CitationNetwork) -> CitationNetwork:
        """Persist ``network`` and return it with ``id`` and ``created_at`` assigned."""

    @abstractmethod
    def list_networks(self, limit: int = 50) -> List[CitationNetwork]:
        """Return stored networks, most recent first."""

    @abstractmethod
    def get_paper_by_id(self, paper_id: str) -> Optional[PaperRecord]:
        """Return the stored paper with internal id ``paper_id``, if any."""

    @abstractmethod
    def save_paper(self, record: PaperRecord) -> PaperRecord:
        """Persist ``record`` unless a paper with the same id already exists.

        The existing record is returned unchanged in that case.
        """
