from __future__ import annotations

import hashlib

import httpx

from .errors import InvalidInputError


def normalize_url(url: str | None) -> str:
    """Return the absolute form of ``url`` or raise ``InvalidInputError``."""

    if url is None or not url.strip():
        raise InvalidInputError("Url has not been set.")
    try:
        parsed = httpx.URL(url.strip())
    except httpx.InvalidURL as exc:
        raise InvalidInputError(f"Url is not correct: {exc}") from exc
    if not parsed.scheme or not parsed.host:
        raise InvalidInputError(f"Url is not absolute: {url}")
    return str(parsed)


def digest(normalized_url: str) -> str:
    """Map a normalized URL to its fixed-length hex cache key."""

    return hashlib.sha256(normalized_url.encode("utf-8")).hexdigest()


def cache_key_for(url: str) -> str:
    return digest(normalize_url(url))
