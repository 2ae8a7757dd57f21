"""Custom exception types for the PR review SLO tracker."""


class SLOError(Exception):
    """Base exception for all recoverable SLO tracker errors."""


class ConfigurationError(SLOError):
    """Raised when configuration values (calendar, buckets, SLO) are missing or invalid."""


class InvalidInputError(SLOError):
    """Raised when a review item or snapshot does not satisfy basic input constraints."""


class AuthenticationError(SLOError):
    """Raised when GitHub authentication credentials are unavailable."""


class ApiError(SLOError):
    """Raised when a GitHub or holiday API request fails or returns an unexpected response."""


class StorageError(SLOError):
    """Raised when the append-only data log cannot be read or written."""
