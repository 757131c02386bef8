"""DOI-to-PMID resolution backed by PubMed ``esearch``.

Example
-------
```python
import asyncio

from citegraph.clients import EutilsClient
from citegraph.services.identifier_resolver import IdentifierResolverService

resolver = IdentifierResolverService(EutilsClient())
pmid = asyncio.run(resolver.resolve("10.1038/nature12373"))
```
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from citegraph.clients.base import ClientError
from citegraph.clients.eutils import EutilsClient
from citegraph.exceptions import RecordNotFoundError, UpstreamUnavailableError
from citegraph.identifiers import normalize_doi

logger = logging.getLogger(__name__)


class IdentifierResolverService:
    """Map an external DOI to the internal PubMed identifier."""

    def __init__(self, client: EutilsClient) -> None:
        self.client = client

    async def lookup(self, doi: str) -> Optional[str]:
        """Return the PMID for ``doi`` or ``None`` when PubMed has no match.

        Raises :class:`UpstreamUnavailableError` when the search itself fails.
        """

        normalized = normalize_doi(doi)
        if not normalized:
            return None

        try:
            ids = await asyncio.to_thread(self.client.esearch, f"{normalized}[DOI]", retmax=1)
        except ClientError as exc:
            logger.warning("DOI search failed for %s: %s", normalized, exc)
            raise UpstreamUnavailableError(f"DOI search failed for {normalized}: {exc}") from exc

        if not ids:
            return None
        logger.info("Resolved DOI to PMID", extra={"doi": normalized, "pmid": ids[0]})
        return ids[0]

    async def resolve(self, doi: str) -> str:
        """Return the PMID for ``doi``, raising :class:`RecordNotFoundError` on a miss."""

        pmid = await self.lookup(doi)
        if pmid is None:
            raise RecordNotFoundError(f"No PubMed record found for DOI {doi}")
        return pmid
