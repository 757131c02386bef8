"""Service layer wrapping upstream clients with domain error semantics."""

from .identifier_resolver import IdentifierResolverService
from .link_discovery import LinkDiscoveryService
from .metadata_fetcher import MetadataFetcherService

__all__ = [
    "IdentifierResolverService",
    "LinkDiscoveryService",
    "MetadataFetcherService",
]
