"""In-process network store."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from citegraph.models import CitationNetwork, PaperRecord
from citegraph.storage.base import NetworkStore, generate_network_id, utcnow


class InMemoryNetworkStore(NetworkStore):
    """Dictionary-backed store; contents live as long as the process."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._networks: Dict[str, CitationNetwork] = {}
        self._network_keys: Dict[Tuple[str, int], str] = {}
        self._papers: Dict[str, PaperRecord] = {}

    def get_by_root_and_depth(self, root_doi: str, depth: int) -> Optional[CitationNetwork]:
        with self._lock:
            network_id = self._network_keys.get((root_doi, depth))
            if network_id is None:
                return None
            return self._networks[network_id].model_copy(deep=True)

    def save(self, network: CitationNetwork) -> CitationNetwork:
        persisted = network.model_copy(
            update={"id": network.id or generate_network_id(), "created_at": utcnow()},
            deep=True,
        )
        with self._lock:
            self._networks[persisted.id] = persisted
            self._network_keys[(persisted.root_doi, persisted.depth)] = persisted.id
        return persisted.model_copy(deep=True)

    def list_networks(self, limit: int = 50) -> List[CitationNetwork]:
        with self._lock:
            networks = sorted(
                self._networks.values(), key=lambda item: item.created_at, reverse=True
            )
            return [item.model_copy(deep=True) for item in networks[:limit]]

    def get_paper_by_id(self, paper_id: str) -> Optional[PaperRecord]:
        with self._lock:
            return self._papers.get(paper_id)

    def save_paper(self, record: PaperRecord) -> PaperRecord:
        with self._lock:
            existing = self._papers.get(record.id)
            if existing is not None:
                return existing
            persisted = record.model_copy(update={"created_at": record.created_at or utcnow()})
            self._papers[record.id] = persisted
            return persisted
