from __future__ import annotations

import httpx


class StackeerError(Exception):
    """Base class for every error raised by stackeer."""


class InvalidInputError(StackeerError):
    """Malformed URL or missing required request configuration."""


class TransportError(StackeerError):
    """Network failure, non-2xx response or undecodable download."""


class RetryableHTTPStatusError(TransportError):
    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"Retryable HTTP status: {response.status_code}")


class StorageError(StackeerError):
    """Disk cache I/O failure."""


class EntryNotFoundError(StackeerError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No cache entry for key {key}")


__all__ = [
    "EntryNotFoundError",
    "InvalidInputError",
    "RetryableHTTPStatusError",
    "StackeerError",
    "StorageError",
    "TransportError",
]
