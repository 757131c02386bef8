"""Application configuration for the citation network engine."""

from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from citegraph.models import TraversalMode


class CitegraphConfig(BaseSettings):  # type: ignore[misc]
    """Settings controlling upstream access, caching, storage and traversal."""

    eutils_base_url: str = Field(
        "https://eutils.ncbi.nlm.nih.gov/entrez/eutils",
        description="Base URL of the NCBI E-utilities service",
    )
    ncbi_api_key: Optional[str] = Field(None, description="Optional NCBI API key")
    ncbi_email: Optional[str] = Field(None, description="Contact email sent to NCBI")
    ncbi_tool: str = Field("citegraph", description="Tool name sent to NCBI")
    user_agent: str = Field("citegraph", description="User-Agent header for outbound requests")
    request_timeout_s: float = Field(
        10.0, description="Default timeout (in seconds) for outbound HTTP requests"
    )
    max_retry_attempts: int = Field(
        3, description="Attempts per HTTP request for rate-limited or failing upstream calls"
    )
    requests_per_second: Optional[float] = Field(
        None,
        description="Client-side request ceiling; defaults to 3, or 10 with an API key. 0 disables it",
    )

    cache_dir: Path = Field(Path("pubmed_cache"), description="Directory for raw PubMed XML")

    store_backend: Literal["memory", "postgres"] = Field(
        "memory", description="Network store implementation"
    )
    db_dsn: Optional[str] = Field(None, description="PostgreSQL DSN for the postgres store")

    traversal_mode: TraversalMode = Field(
        TraversalMode.STAGED, description="Default graph traversal strategy"
    )
    default_depth: int = Field(2, description="Depth used when a request omits it")
    max_depth: int = Field(4, description="Largest depth a request may ask for")
    citing_limit: int = Field(5, description="Citing papers followed per node")
    related_limit: int = Field(3, description="Related papers followed per node")
    fetch_batch_size: int = Field(10, description="Records fetched per batch in staged mode")
    max_concurrent_requests: int = Field(
        10, description="Upstream calls allowed in flight during one traversal"
    )

    model_config = SettingsConfigDict(env_prefix="CITEGRAPH_", env_file=".env", extra="ignore")

    def model_post_init(self, __context: Any) -> None:
        """Normalize paths to absolute locations."""

        self.cache_dir = self.cache_dir.expanduser().resolve()

    @field_validator(
        "citing_limit",
        "related_limit",
        "fetch_batch_size",
        "max_concurrent_requests",
        "max_retry_attempts",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("value must be a positive integer")
        return value

    @field_validator("requests_per_second")
    @classmethod
    def validate_rate(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value < 0:
            raise ValueError("requests_per_second must not be negative")
        return value

    @field_validator("default_depth", "max_depth")
    @classmethod
    def validate_depth(cls, value: int) -> int:
        if value < 0:
            raise ValueError("depth must be zero or greater")
        return value

    @model_validator(mode="after")
    def validate_consistency(self) -> "CitegraphConfig":
        if self.default_depth > self.max_depth:
            raise ValueError("default_depth must not exceed max_depth")
        if self.store_backend == "postgres" and not self.db_dsn:
            raise ValueError("db_dsn is required when store_backend is 'postgres'")
        return self
