"""Motion event detection over reconciliation change pairs."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pynestcam.models.device import DeviceRecord
from pynestcam.state.events import ChangePair
from pynestcam.state.policy import has_new_motion_event

_logger = logging.getLogger(__name__)


def detect(changed: Iterable[ChangePair]) -> list[DeviceRecord]:
    """Return flagged copies of the candidates that carry a new event.

    Input records are never mutated.  Each device id is flagged at most
    once, in change order.
    """
    flagged: list[DeviceRecord] = []
    seen: set[str] = set()
    for pair in changed:
        device_id = pair.candidate.id
        if device_id in seen:
            continue
        if not has_new_motion_event(pair.prior, pair.candidate):
            continue
        seen.add(device_id)

        event = pair.candidate.last_event
        if event is not None and not event.is_well_formed:
            _logger.warning(
                "Event for device %s has inconsistent times start=%s end=%s",
                device_id,
                event.start_time,
                event.end_time,
            )
        _logger.debug(
            "New event detected device=%s start=%s",
            device_id,
            event.start_time if event is not None else None,
        )
        flagged.append(pair.candidate.flagged())
    return flagged
