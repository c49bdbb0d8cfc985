"""Event novelty policy.

This module intentionally contains *no* payload parsing.  Timestamps
arrive already parsed (or ``None``) from the model layer.
"""

from __future__ import annotations

from pynestcam.models.device import DeviceRecord


def has_new_motion_event(prior: DeviceRecord, candidate: DeviceRecord) -> bool:
    """Decide whether *candidate* carries an event *prior* had not seen.

    Policy:
    - Both records must carry a ``last_event``.
    - Both start times must be known; an unparsable time never flags.
    - The start times must differ.  Motion/sound flags are not compared.
    """
    prior_event = prior.last_event
    candidate_event = candidate.last_event
    if prior_event is None or candidate_event is None:
        return False
    if prior_event.start_time is None or candidate_event.start_time is None:
        return False
    return prior_event.start_time != candidate_event.start_time
