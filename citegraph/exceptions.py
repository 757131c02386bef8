"""Custom exception hierarchy for the citation network engine."""


class CitegraphError(Exception):
    """Base exception for citation network errors."""


class ConfigError(CitegraphError):
    """Raised when configuration is invalid or incomplete."""


class DatabaseError(CitegraphError):
    """Raised when database operations fail."""


class RecordNotFoundError(CitegraphError):
    """Raised when an identifier or paper cannot be found upstream."""


class UpstreamUnavailableError(CitegraphError):
    """Raised when an upstream call cannot complete."""


class ParseError(CitegraphError):
    """Raised when an upstream payload cannot be parsed."""


class ValidationError(CitegraphError):
    """Raised when request input is malformed."""
