"""Authoritative in-memory camera store.

This is the only component allowed to replace the cached collection.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import NamedTuple

from pynestcam.models.device import DeviceRecord
from pynestcam.state.events import ChangePair, ReconcileResult

_logger = logging.getLogger(__name__)


class _StoreState(NamedTuple):
    """One published version of the store."""

    revision: int
    devices: tuple[DeviceRecord, ...]
    index: Mapping[str, DeviceRecord]


_EMPTY = _StoreState(revision=0, devices=(), index=MappingProxyType({}))


class DeviceStore:
    """Last-known camera collection plus the reconciliation step.

    Revision, collection and id index live in one immutable
    :class:`_StoreState` that is replaced with a single reference
    assignment, so readers always observe either the previous or the new
    version as a whole.  ``reconcile`` holds a writer lock for the whole
    pass; two snapshots are never reconciled at once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = _EMPTY

    @property
    def devices(self) -> tuple[DeviceRecord, ...]:
        """The current collection (read-only)."""
        return self._state.devices

    @property
    def revision(self) -> int:
        """Number of completed reconciliation passes."""
        return self._state.revision

    def get(self, device_id: str) -> DeviceRecord | None:
        return self._state.index.get(device_id)

    def reconcile(self, candidates: Iterable[DeviceRecord]) -> ReconcileResult:
        """Replace the collection with *candidates* and classify each id.

        Ids known before produce a :class:`ChangePair`; ids seen for the
        first time are only reported in ``added``.  Ids missing from
        *candidates* disappear from the collection.
        """
        with self._lock:
            prior = self._state

            updated: list[DeviceRecord] = []
            index: dict[str, DeviceRecord] = {}
            changed: list[ChangePair] = []
            added: list[str] = []
            for candidate in candidates:
                if candidate.id in index:
                    _logger.debug("Duplicate device id %s in snapshot; keeping first", candidate.id)
                    continue
                # The transient event marker is never stored.
                record = candidate.cleared()
                index[record.id] = record
                updated.append(record)

                previous = prior.index.get(record.id)
                if previous is None:
                    added.append(record.id)
                else:
                    changed.append(ChangePair(prior=previous, candidate=record))

            removed = [device_id for device_id in prior.index if device_id not in index]

            state = _StoreState(
                revision=prior.revision + 1,
                devices=tuple(updated),
                index=MappingProxyType(index),
            )
            self._state = state

        if added or removed:
            _logger.debug("Store revision %s added=%s removed=%s", state.revision, added, removed)

        return ReconcileResult(
            revision=state.revision,
            updated=state.devices,
            changed=tuple(changed),
            added=tuple(added),
            removed=tuple(removed),
        )

    def snapshot(self) -> dict[str, DeviceRecord]:
        """Id-keyed copy of the current collection."""
        return dict(self._state.index)
