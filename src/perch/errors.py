"""Perch exception hierarchy.

Only perch's own failures live here. Transport, timeout and URL errors
come from httpx and propagate unchanged so callers can inspect them.
"""


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when client configuration is invalid."""


class CookieDecodeError(PerchError, ValueError):
    """Raised when a ``Set-Cookie`` header value cannot be decoded.

    The cookie jar catches this per header and skips the offending value.
    """

    def __init__(self, header: str, reason: str) -> None:
        self.header = header
        self.reason = reason
        super().__init__(f"Invalid Set-Cookie header {header!r}: {reason}")


class LifespanError(PerchError):
    """Raised when an in-process ASGI application fails its lifespan startup or shutdown."""
