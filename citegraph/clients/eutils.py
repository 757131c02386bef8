"""Client for the NCBI Entrez E-utilities (esearch, efetch, elink)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from citegraph.clients.base import BaseHttpClient, RequestThrottle, UpstreamError

logger = logging.getLogger(__name__)

CITED_IN_LINKNAME = "pubmed_pubmed_citedin"
RELATED_LINKNAME = "pubmed_pubmed"

# NCBI request ceilings per second without and with an API key
ANONYMOUS_RATE = 3.0
KEYED_RATE = 10.0


class EutilsClient(BaseHttpClient):
    """Thin wrapper around the PubMed endpoints of E-utilities.

    All methods are blocking and raise :class:`~citegraph.clients.base.ClientError`
    subclasses on failure; callers decide how failures degrade.
    """

    BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"

    def __init__(
        self,
        *,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        max_attempts: int = 3,
        api_key: Optional[str] = None,
        tool: Optional[str] = None,
        email: Optional[str] = None,
        requests_per_second: Optional[float] = None,
    ) -> None:
        if requests_per_second is None:
            requests_per_second = KEYED_RATE if api_key else ANONYMOUS_RATE
        throttle = RequestThrottle(requests_per_second) if requests_per_second > 0 else None
        super().__init__(
            session=session,
            base_url=base_url,
            timeout=timeout,
            max_attempts=max_attempts,
            throttle=throttle,
        )
        self.api_key = api_key
        self.tool = tool
        self.email = email

    def esearch(self, term: str, *, db: str = "pubmed", retmax: int = 20) -> List[str]:
        """Return the ids matching ``term`` in upstream relevance order."""

        params = self._params(db=db, term=term, retmode="json", retmax=retmax)
        payload = self._json(self._request("GET", "/esearch.fcgi", params=params))
        result = payload.get("esearchresult") or {}
        return [str(item) for item in result.get("idlist") or []]

    def efetch(self, pmid: str, *, db: str = "pubmed") -> str:
        """Return the raw XML record for ``pmid``."""

        params = self._params(db=db, id=pmid, retmode="xml")
        response = self._request(
            "GET", "/efetch.fcgi", params=params, headers={"Accept": "application/xml"}
        )
        return response.text

    def elink(self, pmid: str, linkname: str, *, db: str = "pubmed") -> List[str]:
        """Return ids linked to ``pmid`` through ``linkname``, in upstream order."""

        params = self._params(dbfrom=db, db=db, id=pmid, linkname=linkname, retmode="json")
        payload = self._json(self._request("GET", "/elink.fcgi", params=params))

        links: List[str] = []
        linksets = payload.get("linksets") or []
        if not linksets:
            return links
        for linksetdb in linksets[0].get("linksetdbs") or []:
            if linksetdb.get("linkname") != linkname:
                continue
            links.extend(str(item) for item in linksetdb.get("links") or [])
        return links

    def _params(self, **params: Any) -> Dict[str, Any]:
        if self.api_key:
            params["api_key"] = self.api_key
        if self.tool:
            params["tool"] = self.tool
        if self.email:
            params["email"] = self.email
        return params

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            logger.debug("E-utilities returned non-JSON body for %s", response.url)
            raise UpstreamError(f"Malformed JSON response: {exc}") from exc
        if not isinstance(payload, dict):
            raise UpstreamError("Unexpected JSON payload shape")
        return payload


__all__ = ["CITED_IN_LINKNAME", "EutilsClient", "RELATED_LINKNAME"]
