"""In-process fan-out of camera collections and detected events.

Two subscription classes are served:

* collection subscribers get the latest collection on subscribe, then
  every later one.  Their buffer holds a single item and a newer
  collection replaces an unread older one, so a slow reader may skip
  intermediate versions but always ends up with the latest.
* event subscribers get only events published after they subscribed,
  each at most once, from a bounded buffer.  On overflow the new event
  is dropped for that subscriber.

Publishing never awaits a subscriber.  All methods must be called from
the event loop that consumes the subscriptions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pynestcam.exceptions import NestCamError
from pynestcam.models.device import DeviceRecord

_logger = logging.getLogger(__name__)

T = TypeVar("T")

DeviceCollection = tuple[DeviceRecord, ...]

_CLOSED: Any = object()


class Subscription(Generic[T]):
    """A single subscriber's buffered view of a hub stream.

    Usage::

        async with hub.subscribe_devices() as updates:
            async for devices in updates:
                ...
    """

    def __init__(self, hub: BroadcastHub, *, maxsize: int, latest_wins: bool) -> None:
        self._hub = hub
        self._maxsize = maxsize
        self._latest_wins = latest_wins
        # Unbounded so the end-of-stream marker always fits; ``offer``
        # enforces ``maxsize`` for items.
        self._queue: asyncio.Queue[T] = asyncio.Queue()
        self._closed = False
        self.dropped = 0
        """Items this subscriber never saw because its buffer was full."""

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        size = self._queue.qsize()
        return size - 1 if self._closed and size else size

    def offer(self, item: T) -> bool:
        """Buffer *item* without waiting; returns False if it was not kept."""
        if self._closed:
            return False
        if self._queue.qsize() >= self._maxsize:
            self.dropped += 1
            if not self._latest_wins:
                return False
            self._queue.get_nowait()
        self._queue.put_nowait(item)
        return True

    def finish(self) -> None:
        """End the stream once the buffered items have been read."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def close(self) -> None:
        """Unsubscribe and discard anything not yet read."""
        while not self._queue.empty():
            self._queue.get_nowait()
        self._closed = False
        self.finish()
        self._hub.discard(self)

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for later reads.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> Subscription[T]:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class BroadcastHub:
    """Publishes camera collections and new-event records to subscribers."""

    def __init__(self, *, event_buffer_size: int = 64) -> None:
        if event_buffer_size < 1:
            raise ValueError("event_buffer_size must be at least 1")
        self._event_buffer_size = event_buffer_size
        self._latest: DeviceCollection = ()
        self._device_subscribers: set[Subscription[DeviceCollection]] = set()
        self._event_subscribers: set[Subscription[DeviceRecord]] = set()
        self._closed = False

    @property
    def latest(self) -> DeviceCollection:
        """The collection replayed to new collection subscribers."""
        return self._latest

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._device_subscribers) + len(self._event_subscribers)

    def _require_open(self) -> None:
        if self._closed:
            raise NestCamError("Broadcast hub is closed")

    def subscribe_devices(self) -> Subscription[DeviceCollection]:
        """Subscribe to collection updates, starting with the current one."""
        self._require_open()
        subscription: Subscription[DeviceCollection] = Subscription(self, maxsize=1, latest_wins=True)
        subscription.offer(self._latest)
        self._device_subscribers.add(subscription)
        return subscription

    def subscribe_events(self) -> Subscription[DeviceRecord]:
        """Subscribe to events published from now on."""
        self._require_open()
        subscription: Subscription[DeviceRecord] = Subscription(
            self,
            maxsize=self._event_buffer_size,
            latest_wins=False,
        )
        self._event_subscribers.add(subscription)
        return subscription

    def publish_devices(
        self,
        devices: Iterable[DeviceRecord],
        *,
        replay: Iterable[DeviceRecord] | None = None,
    ) -> None:
        """Hand *devices* to every current collection subscriber.

        *replay* is what later subscribers receive first; it defaults to
        *devices*.  Passing the unflagged collection keeps a detecting
        pass's ``has_new_event`` markers from reaching late subscribers.
        """
        if self._closed:
            return
        collection = tuple(devices)
        self._latest = collection if replay is None else tuple(replay)
        for subscription in list(self._device_subscribers):
            subscription.offer(collection)

    def publish_event(self, record: DeviceRecord) -> None:
        """Hand one new-event record to every event subscriber."""
        if self._closed:
            return
        for subscription in list(self._event_subscribers):
            if not subscription.offer(record):
                _logger.warning(
                    "Event subscriber buffer full (%s); dropping event for device %s",
                    self._event_buffer_size,
                    record.id,
                )

    def close(self) -> None:
        """End every subscription and refuse new ones."""
        if self._closed:
            return
        self._closed = True
        subscriptions: list[Subscription[Any]] = [*self._device_subscribers, *self._event_subscribers]
        self._device_subscribers.clear()
        self._event_subscribers.clear()
        for subscription in subscriptions:
            subscription.finish()
        _logger.debug("Broadcast hub closed (%s subscriptions ended)", len(subscriptions))

    def discard(self, subscription: Subscription[Any]) -> None:
        """Stop delivering to *subscription*."""
        self._device_subscribers.discard(subscription)
        self._event_subscribers.discard(subscription)
