"""Camera state service: stream → reconciliation → fan-out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from pynestcam._transport import NestStreamTransport
from pynestcam.config import NestCamConfig
from pynestcam.exceptions import NestCamAuthenticationError, NestCamError, NestCamStreamError, NestCamTransportError
from pynestcam.hub import BroadcastHub, DeviceCollection, Subscription
from pynestcam.ingestion.snapshot import is_hydrated, normalize_snapshot
from pynestcam.ingestion.stream import SnapshotSource, iter_snapshots
from pynestcam.models.device import DeviceRecord
from pynestcam.sink import EventSink, GraphQLEventSink, SinkDispatcher
from pynestcam.state.detector import detect
from pynestcam.state.events import EventOccurrence, ReconcileResult
from pynestcam.state.store import DeviceStore

_logger = logging.getLogger(__name__)


class DeviceService:
    """Owns the camera store and drives it from the Nest stream.

    Usage::

        async with DeviceService(NestCamConfig.from_env()) as service:
            service.start()
            async for devices in service.subscribe_devices():
                ...

    The store has a single writer: snapshots are processed one at a time
    by :meth:`process_snapshot`, which never waits on subscribers or on
    the remote event log.
    """

    def __init__(
        self,
        config: NestCamConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        sink: EventSink | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._sink = sink
        self._store = DeviceStore()
        self._hub = BroadcastHub(event_buffer_size=config.event_buffer_size)
        self._dispatcher: SinkDispatcher | None = None
        self._run_task: asyncio.Task[None] | None = None
        self.stream_failures = 0

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DeviceService:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        sink = self._sink
        if sink is None and self._config.sink_enabled:
            sink = GraphQLEventSink(self._config.sink_url, self._http_session)
        if sink is not None:
            self._dispatcher = SinkDispatcher(
                sink,
                timeout=self._config.sink_timeout,
                maxsize=self._config.sink_queue_size,
            )
            self._dispatcher.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    @property
    def store(self) -> DeviceStore:
        return self._store

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    @property
    def dispatcher(self) -> SinkDispatcher | None:
        return self._dispatcher

    @property
    def devices(self) -> tuple[DeviceRecord, ...]:
        """The latest reconciled collection."""
        return self._store.devices

    def subscribe_devices(self) -> Subscription[DeviceCollection]:
        """Replay the latest collection, then stream every update."""
        return self._hub.subscribe_devices()

    def subscribe_events(self) -> Subscription[DeviceRecord]:
        """Stream records carrying a newly detected event."""
        return self._hub.subscribe_events()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def process_snapshot(self, payload: Any) -> ReconcileResult | None:
        """Reconcile one raw payload and fan out the results.

        Returns ``None`` (state untouched) when the payload carries no
        ``devices`` object.
        """
        if not is_hydrated(payload):
            _logger.debug("Skipping payload without devices")
            return None

        normalized = normalize_snapshot(payload)
        if normalized.dropped:
            _logger.warning("Dropped %s malformed camera entries", normalized.dropped)

        result = self._store.reconcile(normalized.devices)
        flagged = detect(result.changed)
        result = result.model_copy(update={"flagged": tuple(flagged)})

        by_id = {record.id: record for record in flagged}
        collection = tuple(by_id.get(record.id, record) for record in result.updated)
        self._hub.publish_devices(collection, replay=result.updated)

        for record in flagged:
            self._hub.publish_event(record)
            self._record_event(record)

        _logger.debug(
            "Snapshot reconciled revision=%s devices=%s new_events=%s",
            result.revision,
            len(collection),
            len(flagged),
        )
        return result

    def _record_event(self, record: DeviceRecord) -> None:
        dispatcher = self._dispatcher
        if dispatcher is None:
            return
        try:
            occurrence = EventOccurrence.from_record(record)
        except ValueError:
            _logger.debug("Flagged record %s has no start time; not recorded", record.id, exc_info=True)
            return
        dispatcher.submit(occurrence)

    # ------------------------------------------------------------------
    # Stream loop
    # ------------------------------------------------------------------

    def _default_source(self) -> SnapshotSource:
        session = self._http_session
        if session is None:
            raise NestCamError("Service not initialized. Use 'async with DeviceService(...) as service:'")
        transport = NestStreamTransport(self._config, session)

        def _open() -> AsyncIterator[dict[str, Any]]:
            return iter_snapshots(transport)

        return _open

    async def run(self, source: SnapshotSource | None = None) -> None:
        """Consume snapshots until cancelled.

        Transport and stream failures are recoverable: the cached state
        is kept and the stream is reopened after ``reconnect_delay``.
        An authentication failure ends the loop.
        """
        open_stream = source or self._default_source()
        delay = self._config.reconnect_delay

        while True:
            try:
                async for payload in open_stream():
                    self.process_snapshot(payload)
                _logger.warning("Snapshot stream ended; reopening in %ss", delay)
            except NestCamAuthenticationError:
                _logger.error("Nest stream authentication failed; stopping")
                raise
            except (NestCamTransportError, NestCamStreamError) as exc:
                _logger.warning(
                    "Snapshot stream failed (%s); keeping %s cached devices, reopening in %ss",
                    exc,
                    len(self._store.devices),
                    delay,
                )
            self.stream_failures += 1
            await asyncio.sleep(delay)

    def start(self, source: SnapshotSource | None = None) -> asyncio.Task[None]:
        """Run :meth:`run` as a background task."""
        if self._run_task is not None and not self._run_task.done():
            return self._run_task
        open_stream = source or self._default_source()
        self._run_task = asyncio.get_running_loop().create_task(self.run(open_stream), name="pynestcam-stream")
        return self._run_task

    async def stop(self) -> None:
        """Stop ingestion, flush the event log queue and end all subscriptions."""
        task = self._run_task
        self._run_task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except NestCamError:
                _logger.debug("Stream task had already failed", exc_info=True)

        dispatcher = self._dispatcher
        self._dispatcher = None
        if dispatcher is not None:
            await dispatcher.stop()

        self._hub.close()
