"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, we store message as an attribute so code can inspect it without parsing
    # str(exception). This is the base class - DON'T raise it directly! Always use a specific
    # subclass so callers can catch precisely.
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class ConfigurationError(DomainException):
    """Application misconfiguration.

    Raised when required configuration is missing or invalid.

    Example:
        raise ConfigurationError("TWITCH_CLIENT_ID is not configured")
    """

    pass


class ExternalServiceError(DomainException):
    """External service (IGDB, Twitch auth) returned an error.

    Example:
        raise ExternalServiceError("IGDB API error: 503 Service Unavailable")
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceededError(ExternalServiceError):
    """External service rate limit was exceeded (HTTP 429).

    Example:
        raise RateLimitExceededError("IGDB rate limit exceeded", status_code=429)
    """

    pass


class SyncError(DomainException):
    """A catalog sync run failed.

    Wraps the underlying cause so the CLI can report which mode failed. The
    original exception is chained via ``raise ... from``.
    """

    def __init__(self, message: str, mode: str | None = None) -> None:
        super().__init__(message)
        self.mode = mode


__all__ = [
    "DomainException",
    "ConfigurationError",
    "ExternalServiceError",
    "RateLimitExceededError",
    "SyncError",
]
