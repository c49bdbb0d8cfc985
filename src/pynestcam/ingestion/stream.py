"""Stream ingestion.

Turns the Nest event stream into a stream of full data snapshots.  Only
``put`` events at the root path carry a complete snapshot; anything
else is either control traffic or a partial update and is skipped.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from pynestcam._transport import Transport
from pynestcam.exceptions import NestCamAuthenticationError, NestCamStreamError
from pynestcam.ingestion.snapshot import is_hydrated

_logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], AsyncIterator[dict[str, Any]]]
"""Factory opening a fresh stream of raw snapshot payloads.

The service calls it again after every recoverable failure.
"""


async def iter_snapshots(transport: Transport) -> AsyncIterator[dict[str, Any]]:
    """Yield the data of every hydrated root ``put`` event.

    Raises
    ------
    NestCamAuthenticationError
        The server revoked the access token.
    NestCamStreamError
        The server reported an error or cancelled the stream.
    """
    async for event in transport.events():
        if event.event == "keep-alive":
            continue
        if event.event == "auth_revoked":
            raise NestCamAuthenticationError(f"Access token revoked: {event.data}")
        if event.event in {"error", "cancel"}:
            raise NestCamStreamError(f"Stream {event.event}: {event.data}")
        if event.event not in {"put", "message"}:
            _logger.debug("Ignoring stream event %s", event.event)
            continue

        body = event.data
        if not isinstance(body, dict):
            _logger.warning("Ignoring %s event with non-object body", event.event)
            continue
        path = body.get("path", "/")
        data = body.get("data")
        if path != "/":
            _logger.debug("Ignoring partial update path=%s", path)
            continue
        if not is_hydrated(data):
            _logger.debug("Ignoring root update without devices")
            continue
        yield data
