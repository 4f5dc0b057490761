from __future__ import annotations

import asyncio
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from stackeer.cache import DiskCacheStore, TimestampStore
from stackeer.coordinator import FetchCoordinatorService
from stackeer.errors import TransportError


START = 1_700_000_000.0


class ManualClock:
    def __init__(self, start: float = START) -> None:
        self._value = start

    def advance(self, seconds: float) -> None:
        self._value += seconds

    def advance_hours(self, hours: float) -> None:
        self.advance(hours * 60 * 60)

    def __call__(self) -> float:
        return self._value


class FakeTransport:
    """In-process transport; ``gate`` holds every download until it is set."""

    def __init__(self, payload: bytes = b"", *, error: str | None = None) -> None:
        self.payload = payload
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[str] = []
        self.cancelled = False
        self.closed = False

    async def download(self, url, payload_kind, on_progress=None) -> bytes:
        self.calls.append(url)
        if on_progress is not None:
            on_progress(0)
        if self.gate is not None:
            try:
                await self.gate.wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise TransportError(self.error)
        if on_progress is not None:
            on_progress(50)
            on_progress(100)
        return self.payload

    async def aclose(self) -> None:
        self.closed = True


def make_image(size: tuple[int, int] = (2, 2), color: str = "red", image_format: str = "PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


class Surface:
    def __init__(self) -> None:
        self.image = None


async def wait_until(predicate, attempts: int = 100) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never met")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport(b"hello")


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "stackeer"


@pytest.fixture
def service(cache_dir: Path, transport: FakeTransport, clock: ManualClock) -> FetchCoordinatorService:
    return FetchCoordinatorService(
        DiskCacheStore(cache_dir),
        TimestampStore(cache_dir, clock=clock),
        transport,
        clock=clock,
    )
