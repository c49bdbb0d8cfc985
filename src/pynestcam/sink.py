"""Best-effort forwarding of detected events to a remote event log.

The sink call for an event never runs inside a reconciliation pass: the
service hands occurrences to :class:`SinkDispatcher`, whose single worker
task calls the sink with a timeout.  Failures are logged and dropped;
nothing is retried.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from datetime import datetime
from typing import Any, Protocol

import aiohttp

from pynestcam._constants import CREATE_MOTION_EVENT_MUTATION
from pynestcam.exceptions import NestCamSinkError
from pynestcam.state.events import EventOccurrence

_logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Structural interface for the remote event log.

    Returns ``True`` on success.  Implementations may also raise; the
    dispatcher treats both a ``False`` result and an exception as failure.
    """

    async def record_event(
        self,
        device_id: str,
        device_name: str | None,
        start_time: datetime,
        image_url: str | None,
    ) -> bool: ...


class GraphQLEventSink:
    """Stores motion events through the ``createMotionEvent`` GraphQL mutation."""

    def __init__(self, url: str, http_session: aiohttp.ClientSession) -> None:
        self._url = url
        self._http = http_session

    @staticmethod
    def build_request(
        device_id: str,
        device_name: str | None,
        start_time: datetime,
        image_url: str | None,
    ) -> dict[str, Any]:
        return {
            "query": CREATE_MOTION_EVENT_MUTATION,
            "variables": {
                "cameraId": device_id,
                "cameraName": device_name or "",
                "eventDate": start_time.isoformat(),
                "image": image_url or "",
            },
        }

    async def record_event(
        self,
        device_id: str,
        device_name: str | None,
        start_time: datetime,
        image_url: str | None,
    ) -> bool:
        body = self.build_request(device_id, device_name, start_time, image_url)
        _logger.debug("POST %s createMotionEvent camera=%s", self._url, device_id)

        try:
            async with self._http.post(self._url, json=body) as resp:
                text = await resp.text()
                if resp.status == 401:
                    raise NestCamSinkError("Not authorized")
                if resp.status != 200:
                    raise NestCamSinkError(f"HTTP {resp.status} from event log: {text[:200]}")
        except aiohttp.ClientError as exc:
            raise NestCamSinkError(f"Event log request failed: {exc}") from exc

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise NestCamSinkError(f"Invalid JSON from event log: {text[:200]}") from exc

        if not isinstance(result, dict):
            raise NestCamSinkError("Event log response is not an object")
        errors = result.get("errors")
        if errors:
            raise NestCamSinkError(f"Event log rejected event: {errors}")

        created = (result.get("data") or {}).get("createMotionEvent") or {}
        _logger.debug("Stored motion event camera=%s id=%s", device_id, created.get("id"))
        return True


class SinkDispatcher:
    """Queue plus worker task decoupling sink calls from detection.

    ``submit`` never blocks.  The worker calls the sink once per
    occurrence under ``timeout`` seconds.
    """

    def __init__(self, sink: EventSink, *, timeout: float = 10.0, maxsize: int = 100) -> None:
        self._sink = sink
        self._timeout = timeout
        self._queue: asyncio.Queue[EventOccurrence] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run(), name="pynestcam-sink")

    def submit(self, occurrence: EventOccurrence) -> bool:
        """Queue *occurrence* for delivery; returns False if it was dropped."""
        try:
            self._queue.put_nowait(occurrence)
        except asyncio.QueueFull:
            self.dropped += 1
            _logger.warning(
                "Event log queue full (%s); dropping event device=%s start=%s",
                self._queue.maxsize,
                occurrence.device_id,
                occurrence.start_time.isoformat(),
            )
            return False
        return True

    async def _run(self) -> None:
        while True:
            occurrence = await self._queue.get()
            try:
                await self._deliver(occurrence)
            finally:
                self._queue.task_done()

    async def _deliver(self, occurrence: EventOccurrence) -> None:
        _logger.info(
            "Recording motion event camera=%s (%s) start=%s motion=%s image=%s",
            occurrence.device_name,
            occurrence.device_id,
            occurrence.start_time.isoformat(),
            occurrence.has_motion,
            occurrence.image_url,
        )
        try:
            async with asyncio.timeout(self._timeout):
                ok = await self._sink.record_event(
                    occurrence.device_id,
                    occurrence.device_name,
                    occurrence.start_time,
                    occurrence.image_url,
                )
        except TimeoutError:
            self.failed += 1
            _logger.warning(
                "Event log call timed out after %ss device=%s",
                self._timeout,
                occurrence.device_id,
            )
            return
        except Exception:
            self.failed += 1
            _logger.warning("Event log call failed device=%s", occurrence.device_id, exc_info=True)
            return

        if ok:
            self.delivered += 1
        else:
            self.failed += 1
            _logger.warning("Event log reported failure device=%s", occurrence.device_id)

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Deliver what is queued within *drain_timeout*, then stop the worker."""
        worker = self._worker
        self._worker = None
        if worker is None:
            return

        if not worker.done():
            try:
                await asyncio.wait_for(self._queue.join(), drain_timeout)
            except TimeoutError:
                _logger.warning("Event log queue drain timed out; %s events not recorded", self._queue.qsize())

        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
