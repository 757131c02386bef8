import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pytest

# Ensure repository root is on the import path for local package imports during tests.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from citegraph.clients.base import UpstreamError  # noqa: E402
from citegraph.clients.eutils import CITED_IN_LINKNAME  # noqa: E402


def build_article_xml(
    pmid: str,
    *,
    title: str = "An Example Article",
    doi: Optional[str] = None,
    authors: Sequence[Tuple[str, str, str]] = (("Smith", "Jane", "J"),),
    journal: str = "Journal of Examples",
    year: str = "2020",
    abstract: Optional[str] = "Plain abstract.",
) -> str:
    author_xml = "".join(
        f"<Author><LastName>{last}</LastName><ForeName>{fore}</ForeName>"
        f"<Initials>{initials}</Initials></Author>"
        for last, fore, initials in authors
    )
    doi_xml = f'<ELocationID EIdType="doi">{doi}</ELocationID>' if doi else ""
    abstract_xml = f"<Abstract><AbstractText>{abstract}</AbstractText></Abstract>" if abstract else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        "<PubmedArticleSet><PubmedArticle><MedlineCitation>"
        f"<PMID Version=\"1\">{pmid}</PMID>"
        "<Article>"
        f"<Journal><JournalIssue><PubDate><Year>{year}</Year></PubDate></JournalIssue>"
        f"<Title>{journal}</Title></Journal>"
        f"<ArticleTitle>{title}</ArticleTitle>"
        f"{doi_xml}{abstract_xml}"
        f"<AuthorList>{author_xml}</AuthorList>"
        "</Article></MedlineCitation></PubmedArticle></PubmedArticleSet>"
    )


LinkTable = Dict[str, Union[List[str], Exception]]


class FakeEutilsClient:
    """In-memory stand-in for :class:`EutilsClient` that records every call."""

    def __init__(
        self,
        *,
        search: Optional[Dict[str, Union[List[str], Exception]]] = None,
        records: Optional[Dict[str, str]] = None,
        citing: Optional[LinkTable] = None,
        related: Optional[LinkTable] = None,
    ) -> None:
        self.search = search or {}
        self.records = records or {}
        self.citing = citing or {}
        self.related = related or {}
        self.calls: List[Tuple[str, ...]] = []

    def esearch(self, term: str, *, db: str = "pubmed", retmax: int = 20) -> List[str]:
        self.calls.append(("esearch", term))
        doi = term[: -len("[DOI]")] if term.endswith("[DOI]") else term
        result = self.search.get(doi, [])
        if isinstance(result, Exception):
            raise result
        return list(result)[:retmax]

    def efetch(self, pmid: str, *, db: str = "pubmed") -> str:
        self.calls.append(("efetch", pmid))
        if pmid not in self.records:
            raise UpstreamError(f"Upstream service error (500) for {pmid}")
        return self.records[pmid]

    def elink(self, pmid: str, linkname: str, *, db: str = "pubmed") -> List[str]:
        self.calls.append(("elink", pmid, linkname))
        table = self.citing if linkname == CITED_IN_LINKNAME else self.related
        result = table.get(pmid, [])
        if isinstance(result, Exception):
            raise result
        return list(result)

    def calls_for(self, operation: str) -> List[Tuple[str, ...]]:
        return [call for call in self.calls if call[0] == operation]


def records_for(pmids: Iterable[str]) -> Dict[str, str]:
    return {pmid: build_article_xml(pmid, title=f"Paper {pmid}") for pmid in pmids}


@pytest.fixture
def article_xml():
    return build_article_xml


@pytest.fixture
def make_fake_eutils():
    def _make(**kwargs) -> FakeEutilsClient:
        return FakeEutilsClient(**kwargs)

    return _make


@pytest.fixture
def make_records():
    return records_for
