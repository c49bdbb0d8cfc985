"""Server-Sent Events transport for the Nest REST streaming API."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urljoin

import aiohttp

from pynestcam._constants import USER_AGENT
from pynestcam.config import NestCamConfig
from pynestcam.exceptions import NestCamAuthenticationError, NestCamTransportError

_logger = logging.getLogger(__name__)

_MAX_REDIRECTS = 5
_REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


@dataclass(frozen=True)
class StreamEvent:
    """One dispatched Server-Sent Event.

    ``data`` is the decoded JSON value, or the raw text when the data
    field is not JSON.
    """

    event: str
    data: Any


class Transport(Protocol):
    """Structural transport interface used by the ingestion layer.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`NestStreamTransport`) concrete.
    """

    def events(self) -> AsyncIterator[StreamEvent]: ...


class SseDecoder:
    """Incremental decoder turning SSE lines into :class:`StreamEvent` objects."""

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []

    def feed(self, line: str) -> StreamEvent | None:
        """Consume one line (without terminator); return an event on dispatch."""
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        return None

    def _dispatch(self) -> StreamEvent | None:
        if not self._event and not self._data:
            return None
        text = "\n".join(self._data)
        event = StreamEvent(event=self._event or "message", data=_decode_data(text))
        self._event = ""
        self._data = []
        return event


def _decode_data(text: str) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class NestStreamTransport:
    """Opens the Nest event stream and yields decoded events.

    The Nest API answers the first request with a redirect to the
    serving host.  Redirects are followed here so the bearer token is
    forwarded to the new host.
    """

    def __init__(self, config: NestCamConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "text/event-stream",
            "authorization": f"Bearer {self._config.access_token}",
            "cache-control": "no-cache",
            "user-agent": USER_AGENT,
        }

    def _timeout(self) -> aiohttp.ClientTimeout:
        sock_read = self._config.stream_timeout if self._config.stream_timeout > 0 else None
        return aiohttp.ClientTimeout(total=None, sock_connect=30.0, sock_read=sock_read)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events until the server closes the stream.

        Raises
        ------
        NestCamAuthenticationError
            The token was rejected (HTTP 401/403).
        NestCamTransportError
            Network failure, read timeout, or any other non-200 status.
        """
        url = self._config.api_url
        endpoint = url
        try:
            for _ in range(_MAX_REDIRECTS + 1):
                async with self._http.get(
                    url,
                    headers=self._headers(),
                    timeout=self._timeout(),
                    allow_redirects=False,
                ) as resp:
                    if resp.status in _REDIRECT_STATUSES and "Location" in resp.headers:
                        url = urljoin(url, resp.headers["Location"])
                        _logger.debug("Stream redirected to %s", url)
                        continue
                    if resp.status in (401, 403):
                        raise NestCamAuthenticationError(
                            f"HTTP {resp.status}: access token rejected",
                            status_code=resp.status,
                            endpoint=endpoint,
                        )
                    if resp.status != 200:
                        text = await resp.text()
                        raise NestCamTransportError(
                            f"HTTP {resp.status} from stream: {text[:200]}",
                            status_code=resp.status,
                            endpoint=endpoint,
                        )

                    _logger.debug("Stream open %s", url)
                    decoder = SseDecoder()
                    async for raw_line in resp.content:
                        event = decoder.feed(raw_line.decode("utf-8", errors="replace"))
                        if event is not None:
                            yield event
                    _logger.debug("Stream closed by server")
                    return
        except aiohttp.ClientError as exc:
            raise NestCamTransportError(f"Stream request failed: {exc}", endpoint=endpoint) from exc
        except TimeoutError as exc:
            raise NestCamTransportError("Stream read timed out", endpoint=endpoint) from exc

        raise NestCamTransportError("Too many redirects", endpoint=endpoint)
