from __future__ import annotations

import logging
from typing import Any, Callable, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .errors import RetryableHTTPStatusError, TransportError
from .models import PayloadKind


RETRYABLE_STATUS_CODES = {408, 409, 425, 429} | set(range(500, 600))
DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "stackeer/0.1"

ProgressFn = Callable[[int], None]

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def download(
        self,
        url: str,
        payload_kind: PayloadKind,
        on_progress: ProgressFn | None = None,
    ) -> bytes: ...

    async def aclose(self) -> None: ...


class HttpTransport:
    """Downloads payloads over HTTP with retry and progress reporting.

    ``download`` reports best-effort, non-decreasing percentages through
    ``on_progress`` and returns the complete payload. Every failure surfaces
    as ``TransportError``. Cancelling the awaiting task closes the response
    and returns the connection to the pool.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        max_attempts: int = 4,
        user_agent: str | None = None,
        retry_wait: Any = None,
        transport: Any = None,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)
        self._client = httpx.AsyncClient(
            timeout=timeout or DEFAULT_TIMEOUT,
            headers={"User-Agent": user_agent or DEFAULT_USER_AGENT},
            follow_redirects=True,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def download(
        self,
        url: str,
        payload_kind: PayloadKind,
        on_progress: ProgressFn | None = None,
    ) -> bytes:
        reported = -1

        def report(percent: int) -> None:
            nonlocal reported
            if percent > reported:
                reported = percent
                if on_progress is not None:
                    on_progress(percent)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=self._retry_wait,
                retry=retry_if_exception_type((RetryableHTTPStatusError, httpx.TransportError)),
                before_sleep=self._log_retry,
                reraise=True,
            ):
                with attempt:
                    content = await self._download_once(url, payload_kind, report)
        except RetryableHTTPStatusError:
            raise
        except httpx.HTTPStatusError as exc:
            raise TransportError(f"HTTP {exc.response.status_code} while downloading {url}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        report(100)
        return content

    async def _download_once(self, url: str, payload_kind: PayloadKind, report: ProgressFn) -> bytes:
        async with self._client.stream("GET", url) as response:
            if response.status_code in RETRYABLE_STATUS_CODES:
                raise RetryableHTTPStatusError(response)
            response.raise_for_status()

            total = self._content_length(response)
            received = bytearray()
            report(0)
            async for chunk in response.aiter_bytes():
                received += chunk
                if total:
                    report(min(99, len(received) * 100 // total))

            if payload_kind is PayloadKind.TEXT:
                encoding = response.charset_encoding or "utf-8"
                try:
                    text = bytes(received).decode(encoding, errors="replace")
                except LookupError:
                    text = bytes(received).decode("utf-8", errors="replace")
                return text.encode("utf-8")
            return bytes(received)

    @staticmethod
    def _content_length(response: httpx.Response) -> int:
        try:
            return int(response.headers.get("Content-Length", "0"))
        except ValueError:
            return 0

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        logger.warning(
            "Retrying download",
            extra={"attempt": retry_state.attempt_number, "error": str(error)},
        )
