"""Citation network traversal."""

from .builder import CitationGraphBuilder, filter_edges
from .state import TraversalState

__all__ = ["CitationGraphBuilder", "TraversalState", "filter_edges"]
