from __future__ import annotations

import asyncio
import logging

import pytest

from pynestcam.exceptions import NestCamError
from pynestcam.hub import BroadcastHub
from pynestcam.models import DeviceRecord


def _record(device_id: str) -> DeviceRecord:
    return DeviceRecord(id=device_id)


def _ids(collection: tuple[DeviceRecord, ...]) -> list[str]:
    return [record.id for record in collection]


async def _next(subscription, timeout: float = 1.0):
    return await asyncio.wait_for(anext(subscription), timeout)


@pytest.mark.asyncio
async def test_new_subscriber_gets_current_collection_first() -> None:
    hub = BroadcastHub()

    subscription = hub.subscribe_devices()

    assert await _next(subscription) == ()


@pytest.mark.asyncio
async def test_replay_then_live() -> None:
    hub = BroadcastHub()
    for n in range(3):
        hub.publish_devices([_record(f"v{n}")])

    subscription = hub.subscribe_devices()
    assert _ids(await _next(subscription)) == ["v2"]

    hub.publish_devices([_record("v3")])
    assert _ids(await _next(subscription)) == ["v3"]
    hub.publish_devices([_record("v4")])
    assert _ids(await _next(subscription)) == ["v4"]


@pytest.mark.asyncio
async def test_slow_subscriber_always_gets_latest_collection() -> None:
    hub = BroadcastHub()
    subscription = hub.subscribe_devices()

    for n in range(10):
        hub.publish_devices([_record(f"v{n}")])

    assert _ids(await _next(subscription)) == ["v9"]
    assert subscription.pending == 0
    assert subscription.dropped == 10


@pytest.mark.asyncio
async def test_event_subscribers_get_no_replay() -> None:
    hub = BroadcastHub()
    hub.publish_event(_record("before"))

    subscription = hub.subscribe_events()
    hub.publish_event(_record("after-1"))
    hub.publish_event(_record("after-2"))

    assert (await _next(subscription)).id == "after-1"
    assert (await _next(subscription)).id == "after-2"
    with pytest.raises(TimeoutError):
        await _next(subscription, timeout=0.05)


@pytest.mark.asyncio
async def test_each_event_subscriber_gets_its_own_copy() -> None:
    hub = BroadcastHub()
    first = hub.subscribe_events()
    second = hub.subscribe_events()

    hub.publish_event(_record("A"))

    assert (await _next(first)).id == "A"
    assert (await _next(second)).id == "A"


@pytest.mark.asyncio
async def test_event_overflow_drops_new_events(caplog) -> None:
    hub = BroadcastHub(event_buffer_size=2)
    subscription = hub.subscribe_events()

    with caplog.at_level(logging.WARNING, logger="pynestcam.hub"):
        for device_id in ("A", "B", "C"):
            hub.publish_event(_record(device_id))

    assert (await _next(subscription)).id == "A"
    assert (await _next(subscription)).id == "B"
    assert subscription.dropped == 1
    assert "dropping event for device C" in caplog.text


@pytest.mark.asyncio
async def test_close_ends_iteration_after_pending_items() -> None:
    hub = BroadcastHub()
    devices = hub.subscribe_devices()
    events = hub.subscribe_events()
    hub.publish_event(_record("A"))

    hub.close()

    assert _ids(await _next(devices)) == []
    with pytest.raises(StopAsyncIteration):
        await _next(devices)
    assert [record.id async for record in events] == ["A"]
    with pytest.raises(NestCamError):
        hub.subscribe_devices()


@pytest.mark.asyncio
async def test_waiting_subscriber_is_woken_by_close() -> None:
    hub = BroadcastHub()
    subscription = hub.subscribe_events()
    waiter = asyncio.create_task(_next(subscription))
    await asyncio.sleep(0)

    hub.close()

    with pytest.raises(StopAsyncIteration):
        await waiter


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery() -> None:
    hub = BroadcastHub()
    async with hub.subscribe_events() as subscription:
        assert hub.subscriber_count == 1

    assert hub.subscriber_count == 0
    hub.publish_event(_record("A"))
    assert subscription.pending == 0
    with pytest.raises(StopAsyncIteration):
        await _next(subscription)


@pytest.mark.asyncio
async def test_replay_value_is_separate_from_the_delivered_collection() -> None:
    hub = BroadcastHub()
    current = hub.subscribe_devices()
    await _next(current)

    hub.publish_devices([_record("A").flagged()], replay=[_record("A")])

    assert [record.has_new_event for record in await _next(current)] == [True]
    late = hub.subscribe_devices()
    assert [record.has_new_event for record in await _next(late)] == [False]
    assert [record.has_new_event for record in hub.latest] == [False]


@pytest.mark.asyncio
async def test_subscription_offer_and_finish() -> None:
    hub = BroadcastHub()
    subscription = hub.subscribe_events()

    assert subscription.offer(_record("A")) is True
    subscription.finish()

    assert subscription.closed
    assert subscription.pending == 1
    assert subscription.offer(_record("B")) is False
    assert [record.id async for record in subscription] == ["A"]
    assert subscription.pending == 0
