"""Forward-link discovery through PubMed ``elink``."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from citegraph.clients.base import ClientError
from citegraph.clients.eutils import CITED_IN_LINKNAME, RELATED_LINKNAME, EutilsClient

logger = logging.getLogger(__name__)


class LinkDiscoveryService:
    """Return bounded lists of citing and related PMIDs.

    Lookups never raise: any upstream or payload failure yields an empty list,
    so callers cannot tell "no links" apart from "lookup failed".
    """

    def __init__(self, client: EutilsClient) -> None:
        self.client = client

    async def citing_links(self, pmid: str, limit: int) -> List[str]:
        return await self._links(pmid, CITED_IN_LINKNAME, limit)

    async def related_links(self, pmid: str, limit: int) -> List[str]:
        return await self._links(pmid, RELATED_LINKNAME, limit)

    async def _links(self, pmid: str, linkname: str, limit: int) -> List[str]:
        if limit <= 0:
            return []
        try:
            links = await asyncio.to_thread(self.client.elink, pmid, linkname)
        except (ClientError, ValueError, TypeError, AttributeError) as exc:
            logger.warning("Link lookup %s failed for PMID %s: %s", linkname, pmid, exc)
            return []

        # elink echoes the query id in similarity results
        unique: List[str] = []
        for link in links:
            if link == pmid or link in unique:
                continue
            unique.append(link)
        return unique[:limit]
