from typing import Optional


class BenchError(Exception):
    """Base error: a human-readable description plus the underlying cause, if any."""

    def __init__(self, description: str, cause: Optional[BaseException] = None):
        super().__init__(description)
        self.description = description
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.description}: {self.cause}"
        return self.description


class ConfigError(BenchError):
    """Bad URL, missing host or undeterminable port. Fatal before any request."""


class HeaderError(BenchError):
    """A custom header had a separator but an invalid name or value."""


class TransportError(BenchError):
    """Connect, write or read failure at any stage of a request."""
