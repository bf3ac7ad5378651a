"""Exception hierarchy shared by every store backend."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for all storedemo errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigError(StoreError):
    """Raised before any I/O when a store cannot be configured."""
    pass


class MissingCredentials(ConfigError):
    """Raised when a required credential or setting is absent."""

    def __init__(self, field: str, message: str | None = None) -> None:
        super().__init__(message or f"Missing required setting: {field}", {"field": field})
        self.field = field


class UnsupportedScheme(ConfigError):
    pass


class UnsupportedBackend(ConfigError):
    """Raised for recognized schemes whose backend is not wired in."""
    pass


class InvalidPath(ConfigError):
    pass


class ListError(StoreError):
    """Raised when a backend fails while enumerating objects."""
    pass


class GetError(StoreError):
    """Raised when an object cannot be opened for reading."""
    pass


class NotFound(GetError):
    pass


class FetchError(StoreError):
    """Raised when an object stream fails after it was opened."""
    pass
