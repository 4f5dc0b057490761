from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from pydantic import ValidationError

from . import codec
from .cache import ClockFn, DiskCacheStore, TimestampStore
from .consumers import Consumer
from .errors import EntryNotFoundError, InvalidInputError, StorageError, TransportError
from .hashing import cache_key_for, digest, normalize_url
from .models import (
    EncodeFormat,
    FetchCallbacks,
    FetchOptions,
    FetchRequest,
    FetchResult,
    FetchState,
    PayloadKind,
)
from .registry import InFlight, InFlightRegistry
from .settings import Settings, get_settings
from .transport import HttpTransport, Transport
from .ttl import is_valid


logger = logging.getLogger(__name__)

STAT_NAMES = (
    "total_requests",
    "cache_hits",
    "cache_misses",
    "coalesced",
    "api_errors",
    "storage_errors",
)


class FetchOperation:
    """Drives a single request from validation to its terminal state.

    An operation runs once. Its ``state`` follows
    IDLE -> VALIDATING -> SERVING_CACHED | AWAITING_PEER | DOWNLOADING
    -> DELIVERING -> DONE, with ERROR reachable from validation, download
    and delivery.
    """

    def __init__(
        self,
        service: "FetchCoordinatorService",
        request: FetchRequest,
        *,
        consumer: Consumer | None = None,
        callbacks: FetchCallbacks | None = None,
        force_download: bool = False,
    ) -> None:
        self._service = service
        self.request = request
        self._consumer = consumer
        self._callbacks = callbacks or FetchCallbacks()
        self._force_download = force_download
        self.state = FetchState.IDLE
        self.error: str | None = None
        self._url = ""
        self._key = ""

    @property
    def _options(self) -> FetchOptions:
        return self.request.options

    async def run(self) -> FetchResult | None:
        if self.state is not FetchState.IDLE:
            raise RuntimeError("FetchOperation can only run once")

        self._transition(FetchState.VALIDATING)
        try:
            encode_format = self._validate()
        except InvalidInputError as exc:
            return self._fail(str(exc), degrade=False)

        service = self._service
        service._count("total_requests")
        logger.info("Fetching %s", self._url, extra={"key": self._key})
        self._show_loading_placeholder()
        self._callbacks.emit("on_start")

        if self._options.enable_cache and not self._force_download:
            content = self._serve_cached()
            if content is not None:
                try:
                    return self._deliver(content, from_cache=True)
                except TransportError as exc:
                    logger.warning(
                        "Cached entry could not be decoded, downloading again",
                        extra={"key": self._key, "error": str(exc)},
                    )
                    service._discard(self._key)

        service._count("cache_misses")
        logger.info("Cache miss", extra={"key": self._key, "url": self._url})
        try:
            content = await self._download(encode_format)
        except TransportError as exc:
            return self._fail(str(exc), degrade=True)
        self._callbacks.emit("on_downloaded")

        try:
            return self._deliver(content, from_cache=False)
        except TransportError as exc:
            return self._fail(str(exc), degrade=True)

    def _validate(self) -> EncodeFormat | None:
        url = normalize_url(self.request.url)
        kind = self.request.payload_kind
        if kind is None:
            raise InvalidInputError("Payload kind has not been set.")
        encode_format = None
        if kind is PayloadKind.BINARY_IMAGE:
            if self._consumer is None:
                raise InvalidInputError("Target has not been set for an image request.")
            encode_format = self._options.encode_format or EncodeFormat.for_url(url)
        self._url = url
        self._key = digest(url)
        return encode_format

    def _serve_cached(self) -> bytes | None:
        service = self._service
        if not service._is_fresh(self._key, self._options.ttl_hours):
            return None
        self._transition(FetchState.SERVING_CACHED)
        self._callbacks.emit("on_already_cached")
        content = service._read_cached(self._key)
        if content is not None:
            service._count("cache_hits")
            logger.info("Cache hit", extra={"key": self._key, "url": self._url})
        return content

    async def _download(self, encode_format: EncodeFormat | None) -> bytes:
        service = self._service
        flight, created = service._registry.claim(self._key)
        if created:
            self._transition(FetchState.DOWNLOADING)
            flight.task = asyncio.create_task(
                service._run_download(flight, self._url, self.request.payload_kind, encode_format)
            )
        else:
            self._transition(FetchState.AWAITING_PEER)
            service._count("coalesced")
            logger.info("Joining in-flight download", extra={"key": self._key, "url": self._url})
        return await service._await_flight(flight, self._callbacks.on_progress)

    def _deliver(self, content: bytes, *, from_cache: bool, placeholder: bool = False) -> FetchResult:
        self._transition(FetchState.DELIVERING)
        self._callbacks.emit("on_progress", 100)
        result = FetchResult(
            url=self._url,
            key=self._key,
            content=content,
            payload_kind=self.request.payload_kind,
            from_cache=from_cache,
            placeholder=placeholder,
        )
        if self._consumer is not None:
            if result.payload_kind is PayloadKind.BINARY_IMAGE:
                self._consumer.apply(result.image())
            else:
                self._consumer.apply(result.text)
        self._callbacks.emit("on_success", result)
        self._finish(FetchState.DONE)
        return result

    def _fail(self, message: str, *, degrade: bool) -> FetchResult | None:
        self._transition(FetchState.ERROR)
        self.error = message
        if degrade:
            logger.error("Request failed", extra={"url": self._url, "error": message})
        else:
            logger.warning("Invalid fetch request", extra={"error": message})
        self._callbacks.emit("on_error", message)

        placeholder = self._options.error_placeholder
        if degrade and placeholder is not None:
            try:
                return self._deliver(placeholder, from_cache=False, placeholder=True)
            except TransportError as exc:
                logger.warning("Error placeholder could not be decoded", extra={"error": str(exc)})
        self._finish(FetchState.ERROR)
        return None

    def _finish(self, state: FetchState) -> None:
        self.state = state
        if self._key and not self._options.persist_after_use:
            self._service._discard(self._key)
        self._callbacks.emit("on_end")

    def _show_loading_placeholder(self) -> None:
        placeholder = self._options.loading_placeholder
        if placeholder is None or self.request.payload_kind is not PayloadKind.BINARY_IMAGE:
            return
        try:
            self._consumer.apply(codec.decode_image(placeholder))
        except TransportError as exc:
            logger.warning("Loading placeholder could not be decoded", extra={"error": str(exc)})

    def _transition(self, state: FetchState) -> None:
        logger.debug("%s -> %s", self.state.value, state.value, extra={"key": self._key})
        self.state = state


class FetchCoordinatorService:
    """Owns the disk cache, the in-flight registry and the transport.

    Every request goes through ``fetch``; concurrent requests for the same
    URL share a single download. Construct one service per cache root and
    close it with ``aclose`` (or ``async with``).
    """

    def __init__(
        self,
        store: DiskCacheStore,
        timestamps: TimestampStore,
        transport: Transport,
        *,
        registry: InFlightRegistry | None = None,
        clock: ClockFn | None = None,
        default_ttl_hours: int = 72,
    ) -> None:
        self._store = store
        self._timestamps = timestamps
        self._transport = transport
        self._registry = registry or InFlightRegistry()
        self._clock: ClockFn = clock or time.time
        self.default_ttl_hours = default_ttl_hours
        self._stats = dict.fromkeys(STAT_NAMES, 0)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **kwargs: Any) -> "FetchCoordinatorService":
        settings = settings or get_settings()
        clock = kwargs.pop("clock", None)
        transport = kwargs.pop("transport", None) or HttpTransport(
            timeout=settings.http_timeout,
            max_attempts=settings.max_attempts,
            user_agent=settings.user_agent,
        )
        return cls(
            DiskCacheStore(settings.cache_dir),
            TimestampStore(settings.cache_dir, clock=clock),
            transport,
            clock=clock,
            default_ttl_hours=kwargs.pop("default_ttl_hours", settings.default_ttl_hours),
            **kwargs,
        )

    @property
    def store(self) -> DiskCacheStore:
        return self._store

    @property
    def registry(self) -> InFlightRegistry:
        return self._registry

    async def __aenter__(self) -> "FetchCoordinatorService":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        tasks = [flight.task for flight in self._registry.flights() if flight.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._transport.aclose()

    async def fetch(
        self,
        request: FetchRequest,
        *,
        consumer: Consumer | None = None,
        callbacks: FetchCallbacks | None = None,
    ) -> FetchResult | None:
        operation = FetchOperation(self, request, consumer=consumer, callbacks=callbacks)
        return await operation.run()

    async def fetch_url(
        self,
        url: str,
        payload_kind: PayloadKind,
        *,
        consumer: Consumer | None = None,
        callbacks: FetchCallbacks | None = None,
        **options: Any,
    ) -> FetchResult | None:
        options.setdefault("ttl_hours", self.default_ttl_hours)
        try:
            request = FetchRequest(url=url, payload_kind=payload_kind, options=FetchOptions(**options))
        except ValidationError as exc:
            callbacks = callbacks or FetchCallbacks()
            logger.warning("Invalid fetch request", extra={"error": str(exc)})
            callbacks.emit("on_error", f"Invalid fetch options: {exc}")
            callbacks.emit("on_end")
            return None
        return await self.fetch(request, consumer=consumer, callbacks=callbacks)

    async def redownload(
        self,
        request: FetchRequest,
        url: str | None = None,
        *,
        consumer: Consumer | None = None,
        callbacks: FetchCallbacks | None = None,
    ) -> FetchResult | None:
        """Fetch over the network regardless of the cache, optionally for another URL."""

        if url is not None:
            request = request.with_url(url)
        operation = FetchOperation(
            self, request, consumer=consumer, callbacks=callbacks, force_download=True
        )
        return await operation.run()

    def is_cached(self, url: str) -> bool:
        try:
            key = cache_key_for(url)
        except InvalidInputError:
            return False
        return self._store.exists(key)

    def clear_entry(self, url: str) -> None:
        key = cache_key_for(url)
        self._store.delete(key)
        self._timestamps.delete(key)
        logger.info("Cached file has been cleared", extra={"key": key, "url": url})

    def clear_all(self) -> None:
        self._store.clear_all()
        logger.info("All cached files have been cleared", extra={"path": str(self._store.directory)})

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        self._stats = dict.fromkeys(STAT_NAMES, 0)

    def _count(self, name: str) -> None:
        self._stats[name] += 1

    def _is_fresh(self, key: str, ttl_hours: int) -> bool:
        if not self._store.exists(key):
            return False
        return is_valid(self._timestamps.get(key), ttl_hours, self._clock())

    def _read_cached(self, key: str) -> bytes | None:
        try:
            return self._store.read(key)
        except (EntryNotFoundError, StorageError) as exc:
            self._count("storage_errors")
            logger.warning("Cached entry unreadable, downloading again", extra={"key": key, "error": str(exc)})
            return None

    def _persist(self, key: str, content: bytes) -> None:
        try:
            self._store.write(key, content)
            self._timestamps.touch(key, self._clock())
        except StorageError as exc:
            self._count("storage_errors")
            logger.warning("Failed to persist download", extra={"key": key, "error": str(exc)})

    def _discard(self, key: str) -> None:
        try:
            self._store.delete(key)
            self._timestamps.delete(key)
        except StorageError as exc:
            self._count("storage_errors")
            logger.warning("Error while removing cached file", extra={"key": key, "error": str(exc)})

    async def _await_flight(self, flight: InFlight, on_progress: Callable[[int], None] | None) -> bytes:
        flight.waiters += 1
        if on_progress is not None:
            flight.listeners.append(on_progress)
        abandoned = False
        try:
            return await asyncio.shield(flight.future)
        except asyncio.CancelledError:
            abandoned = True
            raise
        finally:
            flight.waiters -= 1
            if on_progress is not None and on_progress in flight.listeners:
                flight.listeners.remove(on_progress)
            # Peers depend on the download's cache write; only the last waiter may cancel it.
            if abandoned and flight.waiters == 0 and flight.task is not None and not flight.task.done():
                logger.info("Cancelling download with no remaining waiters", extra={"key": flight.key})
                flight.task.cancel()

    async def _run_download(
        self,
        flight: InFlight,
        url: str,
        payload_kind: PayloadKind,
        encode_format: EncodeFormat | None,
    ) -> None:
        try:
            content = await self._transport.download(url, payload_kind, flight.notify_progress)
            if payload_kind is PayloadKind.BINARY_IMAGE:
                image_format = encode_format or EncodeFormat.for_url(url)
                content = await asyncio.to_thread(codec.encode_image, content, image_format.value)
        except asyncio.CancelledError:
            self._registry.release(flight)
            flight.future.cancel()
            raise
        except TransportError as exc:
            self._count("api_errors")
            self._registry.release(flight)
            flight.future.set_exception(exc)
            return
        except Exception as exc:
            logger.exception("Unexpected download failure", extra={"key": flight.key})
            self._count("api_errors")
            self._registry.release(flight)
            flight.future.set_exception(TransportError(str(exc) or type(exc).__name__))
            return

        self._persist(flight.key, content)
        self._registry.release(flight)
        flight.future.set_result(content)
