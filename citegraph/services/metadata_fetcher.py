"""Cache-first retrieval of raw PubMed records."""

from __future__ import annotations

import asyncio
import logging

from citegraph.cache import RecordFileCache
from citegraph.clients.base import ClientError
from citegraph.clients.eutils import EutilsClient
from citegraph.exceptions import UpstreamUnavailableError
from citegraph.models import PaperRecord
from citegraph.parsing.pubmed_xml import parse_pubmed_article

logger = logging.getLogger(__name__)


class MetadataFetcherService:
    """Return raw records from the on-disk cache, falling back to ``efetch``.

    Cache entries never expire. A successful network fetch is written through
    to the cache; a failed cache write is logged and otherwise ignored. No
    retry happens at this layer.
    """

    def __init__(self, client: EutilsClient, cache: RecordFileCache) -> None:
        self.client = client
        self.cache = cache

    async def fetch(self, pmid: str) -> str:
        cached = await asyncio.to_thread(self.cache.load, pmid)
        if cached is not None:
            logger.debug("Using cached record for PMID %s", pmid)
            return cached

        try:
            payload = await asyncio.to_thread(self.client.efetch, pmid)
        except ClientError as exc:
            logger.warning("Fetching PMID %s failed: %s", pmid, exc)
            raise UpstreamUnavailableError(f"Fetching PMID {pmid} failed: {exc}") from exc

        logger.debug("Fetched PMID %s (%d chars)", pmid, len(payload))
        try:
            await asyncio.to_thread(self.cache.store, pmid, payload)
        except OSError as exc:
            logger.warning("Failed to cache record for PMID %s: %s", pmid, exc)
        return payload

    async def fetch_record(self, pmid: str) -> PaperRecord:
        """Fetch and parse ``pmid``; raises ``UpstreamUnavailableError`` or ``ParseError``."""

        return parse_pubmed_article(await self.fetch(pmid))
