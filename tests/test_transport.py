from __future__ import annotations

import httpx
import pytest
from pytest_httpx import HTTPXMock
from tenacity import wait_none

from stackeer.errors import RetryableHTTPStatusError, TransportError
from stackeer.models import PayloadKind
from stackeer.transport import HttpTransport


def make_transport(max_attempts: int = 2) -> HttpTransport:
    return HttpTransport(max_attempts=max_attempts, retry_wait=wait_none())


@pytest.mark.asyncio
async def test_download_returns_body_and_reports_progress(httpx_mock: HTTPXMock):
    httpx_mock.add_response(url="https://example.test/img.png", content=b"\x89PNG" + b"0" * 4096)
    transport = make_transport()
    progress: list[int] = []

    content = await transport.download("https://example.test/img.png", PayloadKind.BINARY_IMAGE, progress.append)

    assert content == b"\x89PNG" + b"0" * 4096
    assert progress[0] == 0
    assert progress[-1] == 100
    assert progress == sorted(set(progress))
    await transport.aclose()


@pytest.mark.asyncio
async def test_text_payload_is_stored_as_utf8(httpx_mock: HTTPXMock):
    httpx_mock.add_response(
        content="café".encode("latin-1"),
        headers={"Content-Type": "text/plain; charset=latin-1"},
    )
    transport = make_transport()

    content = await transport.download("https://example.test/menu.txt", PayloadKind.TEXT)

    assert content == "café".encode("utf-8")
    await transport.aclose()


@pytest.mark.asyncio
async def test_retries_on_retryable_status(httpx_mock: HTTPXMock):
    httpx_mock.add_response(status_code=503)
    httpx_mock.add_response(status_code=200, content=b'{"items":[1,2]}')
    transport = make_transport()

    content = await transport.download("https://example.test/data.json", PayloadKind.TEXT)

    assert content == b'{"items":[1,2]}'
    assert len(httpx_mock.get_requests()) == 2
    await transport.aclose()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(httpx_mock: HTTPXMock):
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(status_code=500)
    transport = make_transport(max_attempts=2)

    with pytest.raises(RetryableHTTPStatusError) as excinfo:
        await transport.download("https://example.test/error", PayloadKind.TEXT)

    assert isinstance(excinfo.value, TransportError)
    assert excinfo.value.response.status_code == 500
    await transport.aclose()


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(httpx_mock: HTTPXMock):
    httpx_mock.add_response(status_code=404)
    transport = make_transport(max_attempts=3)

    with pytest.raises(TransportError, match="HTTP 404"):
        await transport.download("https://example.test/missing.png", PayloadKind.BINARY_IMAGE)

    assert len(httpx_mock.get_requests()) == 1
    await transport.aclose()


@pytest.mark.asyncio
async def test_network_errors_surface_as_transport_error(httpx_mock: HTTPXMock):
    httpx_mock.add_exception(httpx.ConnectError("network unreachable"))
    httpx_mock.add_exception(httpx.ConnectError("network unreachable"))
    transport = make_transport(max_attempts=2)

    with pytest.raises(TransportError, match="network unreachable"):
        await transport.download("https://example.test/img.png", PayloadKind.BINARY_IMAGE)

    assert len(httpx_mock.get_requests()) == 2
    await transport.aclose()


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        HttpTransport(max_attempts=0)
