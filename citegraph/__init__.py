"""Citation network discovery over PubMed E-utilities."""

from __future__ import annotations

from .api import CitationNetworkClient
from .config import CitegraphConfig
from .graph import CitationGraphBuilder
from .models import (
    CitationNetwork,
    DoiValidation,
    EdgeType,
    NetworkEdge,
    NetworkMetadata,
    NetworkNode,
    PaperRecord,
    TraversalMode,
)

__all__ = [
    "CitationGraphBuilder",
    "CitationNetwork",
    "CitationNetworkClient",
    "CitegraphConfig",
    "DoiValidation",
    "EdgeType",
    "NetworkEdge",
    "NetworkMetadata",
    "NetworkNode",
    "PaperRecord",
    "TraversalMode",
]
