from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import aiohttp
import pytest

from pynestcam._transport import NestStreamTransport, SseDecoder, StreamEvent
from pynestcam.config import NestCamConfig
from pynestcam.exceptions import NestCamAuthenticationError, NestCamStreamError, NestCamTransportError
from pynestcam.ingestion.stream import iter_snapshots

ROOT = {"devices": {"cameras": {"A": {"device_id": "A"}}}}


class _FakeTransport:
    def __init__(self, events: list[StreamEvent]) -> None:
        self._events = events

    async def events(self) -> AsyncIterator[StreamEvent]:
        for event in self._events:
            yield event


class _Content:
    def __init__(self, lines: list[bytes], exc: BaseException | None = None) -> None:
        self._lines = lines
        self._exc = exc

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iter()

    async def _iter(self) -> AsyncIterator[bytes]:
        for line in self._lines:
            yield line
        if self._exc is not None:
            raise self._exc


class _FakeResponse:
    def __init__(
        self,
        status: int,
        *,
        lines: list[bytes] | None = None,
        headers: dict[str, str] | None = None,
        read_exc: BaseException | None = None,
    ) -> None:
        self.status = status
        self.headers = headers or {}
        self.content = _Content(lines or [], read_exc)

    async def text(self) -> str:
        return "error body"

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, *responses: _FakeResponse, exc: Exception | None = None) -> None:
        self._responses = list(responses)
        self._exc = exc
        self.requests: list[tuple[str, dict[str, str]]] = []

    def get(self, url: str, *, headers: dict[str, str], timeout: Any, allow_redirects: bool) -> _FakeResponse:
        assert allow_redirects is False
        self.requests.append((url, headers))
        if self._exc is not None:
            raise self._exc
        return self._responses.pop(0)


def _config() -> NestCamConfig:
    return NestCamConfig(access_token="c.token", api_url="https://developer-api.nest.com")


async def _collect(iterator: AsyncIterator[Any]) -> list[Any]:
    return [item async for item in iterator]


def test_sse_decoder_dispatches_on_blank_line() -> None:
    decoder = SseDecoder()

    assert decoder.feed("event: put\n") is None
    assert decoder.feed('data: {"path": "/",') is None
    assert decoder.feed('data: "data": {}}') is None
    event = decoder.feed("\n")

    assert event == StreamEvent(event="put", data={"path": "/", "data": {}})


def test_sse_decoder_ignores_comments_and_keeps_non_json_text() -> None:
    decoder = SseDecoder()

    assert decoder.feed(": heartbeat") is None
    assert decoder.feed("") is None
    decoder.feed("event: auth_revoked")
    decoder.feed("data: token revoked")

    assert decoder.feed("") == StreamEvent(event="auth_revoked", data="token revoked")


@pytest.mark.asyncio
async def test_iter_snapshots_yields_only_hydrated_root_puts() -> None:
    transport = _FakeTransport(
        [
            StreamEvent("keep-alive", None),
            StreamEvent("put", {"path": "/", "data": ROOT}),
            StreamEvent("put", {"path": "/devices/cameras/A", "data": {"is_online": False}}),
            StreamEvent("put", {"path": "/", "data": {"structures": {}}}),
            StreamEvent("patch", {"path": "/", "data": ROOT}),
            StreamEvent("put", "garbage"),
            StreamEvent("put", {"path": "/", "data": ROOT}),
        ]
    )

    snapshots = await _collect(iter_snapshots(transport))

    assert snapshots == [ROOT, ROOT]


@pytest.mark.asyncio
async def test_iter_snapshots_auth_revoked_raises() -> None:
    transport = _FakeTransport([StreamEvent("put", {"path": "/", "data": ROOT}), StreamEvent("auth_revoked", "x")])

    with pytest.raises(NestCamAuthenticationError):
        await _collect(iter_snapshots(transport))


@pytest.mark.asyncio
async def test_iter_snapshots_error_event_raises_stream_error() -> None:
    transport = _FakeTransport([StreamEvent("error", {"error": "blocked"})])

    with pytest.raises(NestCamStreamError):
        await _collect(iter_snapshots(transport))


@pytest.mark.asyncio
async def test_transport_follows_redirect_with_token() -> None:
    body = json.dumps({"path": "/", "data": ROOT}).encode()
    session = _FakeSession(
        _FakeResponse(307, headers={"Location": "https://firebase-apiserver.example/"}),
        _FakeResponse(200, lines=[b"event: put\n", b"data: " + body + b"\n", b"\n"]),
    )
    transport = NestStreamTransport(_config(), session)  # type: ignore[arg-type]

    events = await _collect(transport.events())

    assert events == [StreamEvent("put", {"path": "/", "data": ROOT})]
    assert [url for url, _ in session.requests] == [
        "https://developer-api.nest.com",
        "https://firebase-apiserver.example/",
    ]
    assert all(headers["authorization"] == "Bearer c.token" for _, headers in session.requests)
    assert session.requests[0][1]["accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_transport_maps_http_errors() -> None:
    unauthorized = NestStreamTransport(_config(), _FakeSession(_FakeResponse(401)))  # type: ignore[arg-type]
    unavailable = NestStreamTransport(_config(), _FakeSession(_FakeResponse(503)))  # type: ignore[arg-type]

    with pytest.raises(NestCamAuthenticationError) as auth_exc:
        await _collect(unauthorized.events())
    with pytest.raises(NestCamTransportError) as http_exc:
        await _collect(unavailable.events())

    assert auth_exc.value.status_code == 401
    assert http_exc.value.status_code == 503
    assert not isinstance(http_exc.value, NestCamAuthenticationError)


@pytest.mark.asyncio
async def test_transport_wraps_client_errors() -> None:
    session = _FakeSession(exc=aiohttp.ClientConnectionError("reset"))
    transport = NestStreamTransport(_config(), session)  # type: ignore[arg-type]

    with pytest.raises(NestCamTransportError, match="Stream request failed"):
        await _collect(transport.events())


@pytest.mark.asyncio
async def test_transport_reports_silent_stream_as_timed_out() -> None:
    body = json.dumps({"path": "/", "data": ROOT}).encode()
    session = _FakeSession(
        _FakeResponse(200, lines=[b"event: put\n", b"data: " + body + b"\n", b"\n"], read_exc=TimeoutError()),
    )
    transport = NestStreamTransport(_config(), session)  # type: ignore[arg-type]
    received: list[StreamEvent] = []

    with pytest.raises(NestCamTransportError, match="Stream read timed out") as exc_info:
        async for event in transport.events():
            received.append(event)

    assert received == [StreamEvent("put", {"path": "/", "data": ROOT})]
    assert exc_info.value.endpoint == "https://developer-api.nest.com"
    assert not isinstance(exc_info.value, NestCamAuthenticationError)


@pytest.mark.asyncio
async def test_transport_gives_up_after_too_many_redirects() -> None:
    redirects = [_FakeResponse(307, headers={"Location": f"https://hop{n}.example/"}) for n in range(10)]
    session = _FakeSession(*redirects)
    transport = NestStreamTransport(_config(), session)  # type: ignore[arg-type]

    with pytest.raises(NestCamTransportError, match="Too many redirects"):
        await _collect(transport.events())

    assert len(session.requests) == 6
