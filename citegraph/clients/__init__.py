"""HTTP clients used by the citation network service layer."""

from .base import (
    BaseHttpClient,
    ClientError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    RequestThrottle,
    UpstreamError,
)
from .eutils import CITED_IN_LINKNAME, RELATED_LINKNAME, EutilsClient

__all__ = [
    "BaseHttpClient",
    "CITED_IN_LINKNAME",
    "ClientError",
    "EutilsClient",
    "NotFoundError",
    "RELATED_LINKNAME",
    "RateLimitedError",
    "RequestRejectedError",
    "RequestThrottle",
    "UpstreamError",
]
