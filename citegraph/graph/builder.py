"""Depth-bounded citation network traversal.

:class:`CitationGraphBuilder` turns a root DOI into a
:class:`~citegraph.models.CitationNetwork`. Two execution strategies are
available:

``TraversalMode.INTERLEAVED``
    Each paper is fetched and parsed as soon as it is reached, then its links
    are followed. Levels reflect whichever branch reached a paper first.

``TraversalMode.STAGED``
    Links are walked breadth first without fetching metadata, which gives
    every paper its minimum depth. Records are then fetched in fixed-size
    batches and parsed; only parsed papers become nodes.

Edges found through the "citing" relation point from the citing paper to the
paper being expanded. Edges found through the "related" relation point from
the paper being expanded to the related paper. Both carry ``EdgeType.CITES``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from citegraph.exceptions import ParseError, UpstreamUnavailableError, ValidationError
from citegraph.graph.state import TraversalState
from citegraph.identifiers import normalize_doi
from citegraph.models import (
    CitationNetwork,
    EdgeType,
    NetworkEdge,
    NetworkMetadata,
    NetworkNode,
    PaperRecord,
    TraversalMode,
)
from citegraph.parsing.pubmed_xml import parse_pubmed_article
from citegraph.services.identifier_resolver import IdentifierResolverService
from citegraph.services.link_discovery import LinkDiscoveryService
from citegraph.services.metadata_fetcher import MetadataFetcherService
from citegraph.storage.base import NetworkStore

logger = logging.getLogger(__name__)

RecordParser = Callable[[str], PaperRecord]


def filter_edges(nodes: Sequence[NetworkNode], edges: Iterable[NetworkEdge]) -> List[NetworkEdge]:
    """Drop duplicate edges and edges with an endpoint missing from ``nodes``."""

    node_ids = {node.id for node in nodes}
    kept: Dict[Tuple[str, str, EdgeType], NetworkEdge] = {}
    for edge in edges:
        if edge.source in node_ids and edge.target in node_ids:
            kept.setdefault((edge.source, edge.target, edge.type), edge)
    return list(kept.values())


async def _join(awaitables: Sequence[Awaitable[Any]]) -> None:
    """Wait for every awaitable, then re-raise the first failure if any."""

    results = await asyncio.gather(*awaitables, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result


class CitationGraphBuilder:
    """Build citation networks from explicit resolver, fetcher, link and store objects."""

    def __init__(
        self,
        *,
        resolver: IdentifierResolverService,
        fetcher: MetadataFetcherService,
        links: LinkDiscoveryService,
        store: NetworkStore,
        parser: RecordParser = parse_pubmed_article,
        mode: TraversalMode = TraversalMode.STAGED,
        citing_limit: int = 5,
        related_limit: int = 3,
        fetch_batch_size: int = 10,
        max_concurrent_requests: int = 10,
    ) -> None:
        if fetch_batch_size < 1:
            raise ValueError("fetch_batch_size must be at least 1")
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        self.resolver = resolver
        self.fetcher = fetcher
        self.links = links
        self.store = store
        self.parser = parser
        self.mode = mode
        self.citing_limit = citing_limit
        self.related_limit = related_limit
        self.fetch_batch_size = fetch_batch_size
        self.max_concurrent_requests = max_concurrent_requests

    async def build(
        self, root_doi: str, max_depth: int, *, mode: Optional[TraversalMode] = None
    ) -> CitationNetwork:
        """Return the network for ``(root_doi, max_depth)``, generating it if needed.

        A stored network for the same pair is returned unchanged without any
        upstream call. Root resolution failures propagate; per-paper failures
        only shrink the result.
        """

        if max_depth < 0:
            raise ValidationError("depth must be zero or greater")
        root_key = normalize_doi(root_doi)
        if not root_key:
            raise ValidationError("A DOI is required")

        existing = await asyncio.to_thread(self.store.get_by_root_and_depth, root_key, max_depth)
        if existing is not None:
            logger.info("Serving stored network for %s at depth %s", root_key, max_depth)
            return existing

        started = time.perf_counter()
        root_id = await self.resolver.resolve(root_key)

        selected_mode = mode or self.mode
        if selected_mode is TraversalMode.INTERLEAVED:
            traversal: _Traversal = _InterleavedTraversal(self, max_depth)
        else:
            traversal = _StagedTraversal(self, max_depth)
        nodes, edges = await traversal.run(root_id)

        edges = filter_edges(nodes, edges)
        elapsed_ms = int(round((time.perf_counter() - started) * 1000))
        network = CitationNetwork(
            root_doi=root_key,
            depth=max_depth,
            nodes=nodes,
            edges=edges,
            metadata=NetworkMetadata(
                total_nodes=len(nodes),
                total_edges=len(edges),
                processing_time=elapsed_ms,
                max_depth=max_depth,
                traversal_mode=selected_mode,
            ),
        )
        logger.info(
            "Generated citation network",
            extra={
                "root_doi": root_key,
                "root_pmid": root_id,
                "depth": max_depth,
                "mode": selected_mode.value,
                "nodes": len(nodes),
                "edges": len(edges),
                "visited": len(traversal.state.visited),
                "elapsed_ms": elapsed_ms,
            },
        )
        return await asyncio.to_thread(self.store.save, network)


class _Traversal:
    """Per-request traversal state plus the upstream helpers both modes share."""

    def __init__(self, builder: CitationGraphBuilder, max_depth: int) -> None:
        self.builder = builder
        self.max_depth = max_depth
        self.state = TraversalState()
        self.nodes: List[NetworkNode] = []
        self.edges: List[NetworkEdge] = []
        self._limiter = asyncio.Semaphore(builder.max_concurrent_requests)

    async def run(self, root_id: str) -> Tuple[List[NetworkNode], List[NetworkEdge]]:
        raise NotImplementedError

    async def _limited(self, func: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        async with self._limiter:
            return await func(*args)

    async def _neighbors(self, paper_id: str) -> Tuple[List[str], List[str]]:
        citing, related = await asyncio.gather(
            self._limited(self.builder.links.citing_links, paper_id, self.builder.citing_limit),
            self._limited(self.builder.links.related_links, paper_id, self.builder.related_limit),
        )
        return citing, related

    def _record_edges(self, paper_id: str, citing: Sequence[str], related: Sequence[str]) -> List[str]:
        """Add one edge per neighbor not yet visited and return those neighbors in order.

        A neighbor taken from ``citing`` is claimed for this expansion, so the
        same id in ``related`` gets no second, reversed edge.
        """

        unseen: List[str] = []
        for neighbor in citing:
            if self.state.is_visited(neighbor) or neighbor in unseen:
                continue
            self.edges.append(NetworkEdge(source=neighbor, target=paper_id, type=EdgeType.CITES))
            unseen.append(neighbor)
        for neighbor in related:
            if self.state.is_visited(neighbor) or neighbor in unseen:
                continue
            self.edges.append(NetworkEdge(source=paper_id, target=neighbor, type=EdgeType.CITES))
            unseen.append(neighbor)
        return unseen

    async def _fetch_raw(self, paper_id: str) -> Optional[str]:
        try:
            return await self._limited(self.builder.fetcher.fetch, paper_id)
        except UpstreamUnavailableError as exc:
            logger.warning("Skipping PMID %s: %s", paper_id, exc)
            return None

    def _parse(self, paper_id: str, raw: str) -> Optional[PaperRecord]:
        try:
            record = self.builder.parser(raw)
        except ParseError as exc:
            logger.warning("Skipping PMID %s: %s", paper_id, exc)
            return None
        if record.id != paper_id:
            logger.debug("Record for PMID %s reports id %s", paper_id, record.id)
            record = record.model_copy(update={"id": paper_id})
        return record

    async def _persist(self, record: PaperRecord) -> None:
        await asyncio.to_thread(self.builder.store.save_paper, record)


class _InterleavedTraversal(_Traversal):
    async def run(self, root_id: str) -> Tuple[List[NetworkNode], List[NetworkEdge]]:
        await self._visit(root_id, 0)
        return self.nodes, self.edges

    async def _visit(self, paper_id: str, depth: int) -> None:
        if depth > self.max_depth or not self.state.mark(paper_id, depth):
            return
        logger.debug("Visiting PMID %s at depth %s", paper_id, depth)

        raw = await self._fetch_raw(paper_id)
        record = self._parse(paper_id, raw) if raw is not None else None
        if record is None:
            # the id keeps its visited slot and is not retried
            return

        self.nodes.append(NetworkNode.from_record(record, level=depth))
        await self._persist(record)

        if depth == self.max_depth:
            return

        citing, related = await self._neighbors(paper_id)
        children = self._record_edges(paper_id, citing, related)
        await _join([self._visit(child, depth + 1) for child in children])


class _StagedTraversal(_Traversal):
    async def run(self, root_id: str) -> Tuple[List[NetworkNode], List[NetworkEdge]]:
        await self._discover(root_id)
        raw_records = await self._fetch_all(list(self.state.levels))
        await self._assemble(raw_records)
        return self.nodes, self.edges

    async def _discover(self, root_id: str) -> None:
        """Walk links level by level so each id is marked at its minimum depth."""

        self.state.mark(root_id, 0)
        frontier = [root_id]
        for depth in range(self.max_depth):
            if not frontier:
                break
            neighbor_lists = await asyncio.gather(*(self._neighbors(pid) for pid in frontier))
            next_frontier: List[str] = []
            for paper_id, (citing, related) in zip(frontier, neighbor_lists):
                for neighbor in self._record_edges(paper_id, citing, related):
                    if self.state.mark(neighbor, depth + 1):
                        next_frontier.append(neighbor)
            logger.debug("Depth %s discovered %s new papers", depth + 1, len(next_frontier))
            frontier = next_frontier

    async def _fetch_all(self, paper_ids: List[str]) -> Dict[str, str]:
        raw_records: Dict[str, str] = {}
        size = self.builder.fetch_batch_size
        for start in range(0, len(paper_ids), size):
            batch = paper_ids[start : start + size]
            payloads = await asyncio.gather(*(self._fetch_raw(pid) for pid in batch))
            for paper_id, payload in zip(batch, payloads):
                if payload is not None:
                    raw_records[paper_id] = payload
        return raw_records

    async def _assemble(self, raw_records: Dict[str, str]) -> None:
        records: List[PaperRecord] = []
        for paper_id, raw in raw_records.items():
            record = self._parse(paper_id, raw)
            if record is None:
                continue
            records.append(record)
            self.nodes.append(NetworkNode.from_record(record, level=self.state.levels[paper_id]))
        await _join([self._persist(record) for record in records])


__all__ = ["CitationGraphBuilder", "RecordParser", "filter_edges"]
