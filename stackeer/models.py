from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Callable

import httpx
from pydantic import BaseModel, ConfigDict, Field

from . import codec


class PayloadKind(str, Enum):
    BINARY_IMAGE = "image"
    TEXT = "text"


class EncodeFormat(str, Enum):
    PNG = "PNG"
    JPEG = "JPEG"

    @classmethod
    def for_url(cls, url: str) -> "EncodeFormat":
        suffix = PurePosixPath(httpx.URL(url).path).suffix.lower()
        return cls.PNG if suffix == ".png" else cls.JPEG


class FetchState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SERVING_CACHED = "serving_cached"
    AWAITING_PEER = "awaiting_peer"
    DOWNLOADING = "downloading"
    DELIVERING = "delivering"
    DONE = "done"
    ERROR = "error"


class FetchOptions(BaseModel):
    """Per-request cache configuration."""

    enable_cache: bool = Field(default=True, description="Serve from the disk cache when the entry is still valid")
    ttl_hours: int = Field(default=72, ge=0, description="Hours a stored entry stays valid; 0 always revalidates")
    persist_after_use: bool = Field(default=True, description="Keep the cache entry once the result is delivered")
    encode_format: EncodeFormat | None = Field(
        default=None, description="Image storage encoding; inferred from the URL extension when unset"
    )
    error_placeholder: bytes | None = Field(default=None, description="Payload delivered when the fetch fails")
    loading_placeholder: bytes | None = Field(default=None, description="Image applied to the consumer while loading")

    model_config = ConfigDict(frozen=True, extra="forbid")


class FetchRequest(BaseModel):
    """One logical fetch. The URL is validated by the coordinator, not here."""

    url: str | None = None
    payload_kind: PayloadKind | None = None
    options: FetchOptions = Field(default_factory=FetchOptions)

    model_config = ConfigDict(frozen=True, extra="forbid")

    def with_url(self, url: str) -> "FetchRequest":
        return self.model_copy(update={"url": url})


@dataclass(slots=True, frozen=True)
class FetchResult:
    url: str
    key: str
    content: bytes
    payload_kind: PayloadKind
    from_cache: bool = False
    placeholder: bool = False

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def image(self) -> Any:
        return codec.decode_image(self.content)


@dataclass(slots=True)
class FetchCallbacks:
    """Consumer callback surface; every hook is optional."""

    on_success: Callable[[FetchResult], None] | None = None
    on_error: Callable[[str], None] | None = None
    on_progress: Callable[[int], None] | None = None
    on_start: Callable[[], None] | None = None
    on_downloaded: Callable[[], None] | None = None
    on_already_cached: Callable[[], None] | None = None
    on_end: Callable[[], None] | None = None

    def emit(self, hook: str, *args: Any) -> None:
        callback = getattr(self, hook)
        if callback is not None:
            callback(*args)
