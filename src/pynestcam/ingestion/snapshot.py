"""Snapshot ingestion.

Translates one raw Nest data payload into canonical camera records.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import ValidationError

from pynestcam.ingestion.normalize import build_embedded_markup, build_live_feed_url, safe_bool, safe_str
from pynestcam.models.device import DeviceRecord

_logger = logging.getLogger(__name__)


class NormalizedSnapshot(NamedTuple):
    """Records built from one payload, plus the number of entries dropped."""

    devices: tuple[DeviceRecord, ...]
    dropped: int


def is_hydrated(payload: Any) -> bool:
    """Return True if *payload* is a root data object carrying ``devices``."""
    return isinstance(payload, Mapping) and isinstance(payload.get("devices"), Mapping)


def _camera_entries(payload: Any) -> Iterable[Any]:
    if not isinstance(payload, Mapping):
        return ()
    devices = payload.get("devices")
    # Accept both the root object and the `devices` object itself.
    container = devices if isinstance(devices, Mapping) else payload
    cameras = container.get("cameras")
    if isinstance(cameras, Mapping):
        return cameras.values()
    if isinstance(cameras, list):
        return cameras
    return ()


def _sharing_fields(entry: Mapping[str, Any]) -> dict[str, str | None]:
    """Derive the live feed URL and iframe markup for a shared camera."""
    share_url = safe_str(entry.get("public_share_url"))
    if not safe_bool(entry.get("is_public_share_enabled")) or share_url is None or not share_url.strip():
        return {"live_feed_url": None, "embedded_markup": None}

    web_url = safe_str(entry.get("web_url"))
    return {
        "live_feed_url": build_live_feed_url(share_url),
        "embedded_markup": build_embedded_markup(web_url) if web_url else None,
    }


def build_device_record(entry: Mapping[str, Any]) -> DeviceRecord:
    """Build a record from one raw camera entry.

    Raises :class:`pydantic.ValidationError` when the entry has no usable
    ``device_id``.
    """
    values = {
        key: value
        for key, value in entry.items()
        # Derived fields are never taken from the payload.
        if key not in {"live_feed_url", "embedded_markup", "has_new_event"}
    }
    values.update(_sharing_fields(entry))
    return DeviceRecord.model_validate(values)


def normalize_snapshot(payload: Any) -> NormalizedSnapshot:
    """Convert a raw payload into camera records in snapshot order.

    Malformed entries are logged and counted in ``dropped``; they never
    fail the rest of the batch.  A repeated id keeps its first entry.
    """
    devices: list[DeviceRecord] = []
    seen: set[str] = set()
    dropped = 0

    for entry in _camera_entries(payload):
        if not isinstance(entry, Mapping):
            dropped += 1
            _logger.warning("Dropping camera entry of type %s", type(entry).__name__)
            continue
        try:
            record = build_device_record(entry)
        except ValidationError as exc:
            dropped += 1
            _logger.warning(
                "Dropping malformed camera entry device_id=%r: %s",
                entry.get("device_id"),
                exc.errors(include_url=False),
            )
            continue
        if record.id in seen:
            dropped += 1
            _logger.warning("Dropping duplicate camera entry device_id=%s", record.id)
            continue
        seen.add(record.id)
        devices.append(record)

    if dropped:
        _logger.debug("Snapshot normalized kept=%s dropped=%s", len(devices), dropped)
    return NormalizedSnapshot(devices=tuple(devices), dropped=dropped)
