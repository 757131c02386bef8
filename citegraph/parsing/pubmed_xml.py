"""Utilities for extracting paper metadata from PubMed ``efetch`` XML.

The parser reads the first ``PubmedArticle`` of a ``PubmedArticleSet`` and
produces a :class:`~citegraph.models.PaperRecord`. Anything that prevents a
record from being built raises :class:`~citegraph.exceptions.ParseError`.
"""

from __future__ import annotations

import re
from typing import List, Optional

from lxml import etree

from citegraph.exceptions import ParseError
from citegraph.identifiers import normalize_doi
from citegraph.models import PaperRecord

_YEAR_PATTERN = re.compile(r"\b(\d{4})\b")


def _get_text(element: etree._Element | None) -> str:
    """Extract normalized text from an element, including inline markup."""
    if element is None:
        return ""
    return " ".join("".join(element.itertext()).split())


def _build_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, load_dtd=False)


def _extract_doi(article: etree._Element, pubmed_article: etree._Element) -> Optional[str]:
    for location in article.findall("ELocationID"):
        if location.get("EIdType") == "doi":
            doi = normalize_doi(_get_text(location))
            if doi:
                return doi
    for article_id in pubmed_article.findall("PubmedData/ArticleIdList/ArticleId"):
        if article_id.get("IdType") == "doi":
            doi = normalize_doi(_get_text(article_id))
            if doi:
                return doi
    return None


def _extract_authors(article: etree._Element) -> List[str]:
    authors: List[str] = []
    for author in article.findall("AuthorList/Author"):
        last_name = _get_text(author.find("LastName"))
        if not last_name:
            collective = _get_text(author.find("CollectiveName"))
            if collective:
                authors.append(collective)
            continue
        fore_name = _get_text(author.find("ForeName"))
        initials = _get_text(author.find("Initials"))
        given = fore_name or initials
        authors.append(f"{last_name}, {given}" if given else last_name)
    return authors


def _extract_journal(article: etree._Element) -> Optional[str]:
    journal = article.find("Journal")
    if journal is None:
        return None
    return _get_text(journal.find("Title")) or _get_text(journal.find("ISOAbbreviation")) or None


def _extract_year(article: etree._Element) -> Optional[int]:
    pub_date = article.find("Journal/JournalIssue/PubDate")
    if pub_date is None:
        return None
    raw = _get_text(pub_date.find("Year")) or _get_text(pub_date.find("MedlineDate"))
    match = _YEAR_PATTERN.search(raw)
    return int(match.group(1)) if match else None


def _extract_abstract(article: etree._Element) -> Optional[str]:
    """Join abstract sections, prefixing labelled sections with their label."""
    sections = article.findall("Abstract/AbstractText")
    if not sections:
        return None

    parts: List[str] = []
    for section in sections:
        content = _get_text(section)
        label = (section.get("Label") or "").strip()
        if label and content:
            parts.append(f"{label}: {content}")
        elif content:
            parts.append(content)
    return " ".join(parts) or None


def parse_pubmed_article(xml: str | bytes) -> PaperRecord:
    """Parse a raw ``efetch`` payload into a :class:`PaperRecord`."""

    if not xml:
        raise ParseError("Empty PubMed payload")

    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    try:
        root = etree.fromstring(data, parser=_build_parser())
    except etree.XMLSyntaxError as exc:
        raise ParseError(f"Malformed PubMed XML: {exc}") from exc

    pubmed_article = root if root.tag == "PubmedArticle" else root.find("PubmedArticle")
    if pubmed_article is None:
        raise ParseError("No PubmedArticle element in payload")

    citation = pubmed_article.find("MedlineCitation")
    if citation is None:
        raise ParseError("PubmedArticle has no MedlineCitation")

    pmid = _get_text(citation.find("PMID"))
    if not pmid:
        raise ParseError("MedlineCitation has no PMID")

    article = citation.find("Article")
    if article is None:
        raise ParseError(f"MedlineCitation {pmid} has no Article")

    return PaperRecord(
        id=pmid,
        pmid=pmid,
        doi=_extract_doi(article, pubmed_article),
        title=_get_text(article.find("ArticleTitle")),
        authors=_extract_authors(article),
        journal=_extract_journal(article),
        year=_extract_year(article),
        abstract=_extract_abstract(article),
    )


__all__ = ["parse_pubmed_article"]
