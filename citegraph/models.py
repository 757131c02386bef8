"""Pydantic models for papers and citation networks."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EdgeType(str, Enum):
    """Relation kind carried by a network edge."""

    CITES = "cites"
    CITED_BY = "cited_by"


class TraversalMode(str, Enum):
    """Execution strategy used by the graph builder."""

    INTERLEAVED = "interleaved"
    STAGED = "staged"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─────────────────────────────────────────────────────────────────────────────
# Paper records
# ─────────────────────────────────────────────────────────────────────────────


class PaperRecord(_CamelModel):
    """Structured summary of a single PubMed article."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str  # internal PubMed identifier
    pmid: str | None = None
    doi: str | None = None
    title: str
    authors: list[str] = Field(default_factory=list)
    journal: str | None = None
    year: int | None = None
    abstract: str | None = None
    citation_count: int = 0
    created_at: datetime | None = None


# ─────────────────────────────────────────────────────────────────────────────
# Network models
# ─────────────────────────────────────────────────────────────────────────────


class NetworkNode(_CamelModel):
    """Paper projected into the graph view with its traversal level."""

    id: str
    pmid: str | None = None
    doi: str | None = None
    title: str
    authors: list[str] = Field(default_factory=list)
    journal: str | None = None
    year: int | None = None
    citation_count: int = 0
    level: int
    x: float | None = None
    y: float | None = None

    @classmethod
    def from_record(cls, record: PaperRecord, *, level: int) -> "NetworkNode":
        return cls(
            id=record.id,
            pmid=record.pmid,
            doi=record.doi,
            title=record.title,
            authors=list(record.authors),
            journal=record.journal,
            year=record.year,
            citation_count=record.citation_count,
            level=level,
        )


class NetworkEdge(_CamelModel):
    """Directed edge between two paper ids."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    source: str
    target: str
    type: EdgeType = EdgeType.CITES


class NetworkMetadata(_CamelModel):
    """Summary statistics for a generated network."""

    total_nodes: int
    total_edges: int
    processing_time: int  # milliseconds
    max_depth: int
    traversal_mode: TraversalMode | None = None


class DoiValidation(_CamelModel):
    """Outcome of a DOI format check and upstream lookup."""

    valid: bool
    found: bool
    pmid: str | None = None


class CitationNetwork(_CamelModel):
    """A generated citation network rooted at a DOI."""

    id: str | None = None
    root_doi: str
    depth: int
    nodes: list[NetworkNode] = Field(default_factory=list)
    edges: list[NetworkEdge] = Field(default_factory=list)
    metadata: NetworkMetadata | None = None
    created_at: datetime | None = None


__all__ = [
    "CitationNetwork",
    "DoiValidation",
    "EdgeType",
    "NetworkEdge",
    "NetworkMetadata",
    "NetworkNode",
    "PaperRecord",
    "TraversalMode",
]
