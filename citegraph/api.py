"""High-level citation network API.

This module exposes the :class:`CitationNetworkClient` facade. It wires one
E-utilities client, the record cache, the network store and the graph builder
together once, and every request goes through those shared objects.

Example: generate a network
---------------------------
```python
import asyncio

from citegraph.api import CitationNetworkClient

client = CitationNetworkClient()
network = asyncio.run(client.generate_network("10.1038/nature12373", depth=1))
for node in network.nodes:
    print(node.level, node.id, node.title)
```
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import requests

from .cache import RecordFileCache
from .clients.eutils import EutilsClient
from .config import CitegraphConfig
from .exceptions import ParseError, RecordNotFoundError, UpstreamUnavailableError, ValidationError
from .graph.builder import CitationGraphBuilder
from .identifiers import is_valid_doi, normalize_pmid
from .models import CitationNetwork, DoiValidation, PaperRecord, TraversalMode
from .services.identifier_resolver import IdentifierResolverService
from .services.link_discovery import LinkDiscoveryService
from .services.metadata_fetcher import MetadataFetcherService
from .storage import NetworkStore, build_store

logger = logging.getLogger(__name__)


def build_session(config: CitegraphConfig) -> requests.Session:
    """Return a :class:`requests.Session` carrying the configured User-Agent."""

    session = requests.Session()
    if config.user_agent:
        session.headers.setdefault("User-Agent", config.user_agent)
    return session


class CitationNetworkClient:
    """Facade around DOI validation, network generation and paper lookup."""

    def __init__(
        self,
        config: Optional[CitegraphConfig] = None,
        *,
        session: Optional[requests.Session] = None,
        eutils_client: Optional[EutilsClient] = None,
        cache: Optional[RecordFileCache] = None,
        store: Optional[NetworkStore] = None,
    ) -> None:
        self.config = config or CitegraphConfig()
        self.eutils = eutils_client or EutilsClient(
            session=session or build_session(self.config),
            base_url=self.config.eutils_base_url,
            timeout=self.config.request_timeout_s,
            max_attempts=self.config.max_retry_attempts,
            api_key=self.config.ncbi_api_key,
            tool=self.config.ncbi_tool,
            email=self.config.ncbi_email,
            requests_per_second=self.config.requests_per_second,
        )
        self.cache = cache or RecordFileCache(self.config.cache_dir)
        self.store = store or build_store(self.config)

        self.resolver = IdentifierResolverService(self.eutils)
        self.fetcher = MetadataFetcherService(self.eutils, self.cache)
        self.links = LinkDiscoveryService(self.eutils)
        self.builder = CitationGraphBuilder(
            resolver=self.resolver,
            fetcher=self.fetcher,
            links=self.links,
            store=self.store,
            mode=self.config.traversal_mode,
            citing_limit=self.config.citing_limit,
            related_limit=self.config.related_limit,
            fetch_batch_size=self.config.fetch_batch_size,
            max_concurrent_requests=self.config.max_concurrent_requests,
        )

    async def validate_doi(self, doi: str) -> DoiValidation:
        """Check the DOI format and, when well formed, whether PubMed knows it."""

        if not is_valid_doi(doi):
            return DoiValidation(valid=False, found=False)
        pmid = await self.resolver.lookup(doi)
        return DoiValidation(valid=True, found=pmid is not None, pmid=pmid)

    async def generate_network(
        self,
        doi: str,
        depth: Optional[int] = None,
        *,
        mode: Optional[TraversalMode] = None,
    ) -> CitationNetwork:
        """Return the citation network rooted at ``doi``.

        Raises :class:`ValidationError` for an out-of-range depth,
        :class:`RecordNotFoundError` when the DOI is unknown upstream and
        :class:`UpstreamUnavailableError` when root resolution fails.
        """

        resolved_depth = self.config.default_depth if depth is None else depth
        if resolved_depth < 0 or resolved_depth > self.config.max_depth:
            raise ValidationError(f"depth must be between 0 and {self.config.max_depth}")
        return await self.builder.build(doi, resolved_depth, mode=mode)

    async def get_paper(self, paper_id: str) -> PaperRecord:
        """Return a stored paper, fetching and storing it on a miss."""

        pmid = normalize_pmid(paper_id)
        if pmid is None:
            raise RecordNotFoundError(f"Paper {paper_id!r} not found")

        paper = await asyncio.to_thread(self.store.get_paper_by_id, pmid)
        if paper is not None:
            return paper

        try:
            record = await self.fetcher.fetch_record(pmid)
        except (UpstreamUnavailableError, ParseError) as exc:
            logger.warning("Paper %s unavailable: %s", pmid, exc)
            raise RecordNotFoundError(f"Paper {pmid} not found") from exc
        if record.id != pmid:
            # merged records report their surviving PMID
            logger.debug("Record for PMID %s reports id %s", pmid, record.id)
            record = record.model_copy(update={"id": pmid})
        return await asyncio.to_thread(self.store.save_paper, record)

    async def list_networks(self, limit: int = 50) -> List[CitationNetwork]:
        return await asyncio.to_thread(self.store.list_networks, limit)


__all__ = ["CitationNetworkClient", "build_session"]
