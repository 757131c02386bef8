from __future__ import annotations

import re

_DOI_PREFIX_PATTERN = re.compile(r"^(https?://)?(dx\.)?doi\.org/", re.IGNORECASE)
_DOI_PATTERN = re.compile(r"^10\.\d{4,}/\S+$")
_PMID_PATTERN = re.compile(r"^\d+$")


def normalize_doi(doi: str | None) -> str | None:
    """Normalize a DOI string into a canonical lowercase form.

    The normalization removes leading DOI prefixes (e.g., ``https://doi.org/`` or
    ``doi:``), trims whitespace, and lowercases the remaining identifier. Empty
    or missing values return ``None``.
    """

    if not doi:
        return None

    cleaned = doi.strip()
    cleaned = _DOI_PREFIX_PATTERN.sub("", cleaned)
    if cleaned.lower().startswith("doi:"):
        cleaned = cleaned.split(":", 1)[1]
    cleaned = cleaned.strip().lower()

    return cleaned or None


def is_valid_doi(doi: str | None) -> bool:
    """Return ``True`` when ``doi`` looks like a registered DOI (``10.NNNN/suffix``)."""

    normalized = normalize_doi(doi)
    if not normalized:
        return False
    return bool(_DOI_PATTERN.match(normalized))


def normalize_pmid(pmid: str | int | None) -> str | None:
    """Return a PubMed identifier as a plain digit string, or ``None``."""

    if pmid is None:
        return None
    cleaned = str(pmid).strip()
    if cleaned.lower().startswith("pmid:"):
        cleaned = cleaned.split(":", 1)[1].strip()
    if not _PMID_PATTERN.match(cleaned):
        return None
    return cleaned.lstrip("0") or None
