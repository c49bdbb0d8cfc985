"""Reconciliation results.

The store produces these; the detector and the service consume them.
None of them are ever stored as cache state.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pynestcam.models.device import DeviceRecord


class ChangePair(BaseModel):
    """Prior and incoming record for an id present in both."""

    model_config = ConfigDict(frozen=True)

    prior: DeviceRecord
    candidate: DeviceRecord

    @property
    def device_id(self) -> str:
        return self.candidate.id


class ReconcileResult(BaseModel):
    """Outcome of one reconciliation pass."""

    model_config = ConfigDict(frozen=True)

    revision: int = Field(..., description="Store revision produced by this pass")
    updated: tuple[DeviceRecord, ...] = ()
    changed: tuple[ChangePair, ...] = ()
    added: tuple[str, ...] = Field(default=(), description="Ids first seen in this pass")
    removed: tuple[str, ...] = Field(default=(), description="Ids absent from this pass")
    flagged: tuple[DeviceRecord, ...] = Field(default=(), description="Records carrying a new event")


class EventOccurrence(BaseModel):
    """A single detected motion/sound event, as handed to the event sink."""

    model_config = ConfigDict(frozen=True)

    device_id: str
    device_name: str | None = None
    start_time: datetime
    image_url: str | None = None
    has_motion: bool | None = None
    has_sound: bool | None = None

    @classmethod
    def from_record(cls, record: DeviceRecord) -> EventOccurrence:
        """Build an occurrence from a record whose ``last_event`` has a start time."""
        event = record.last_event
        if event is None or event.start_time is None:
            raise ValueError(f"device {record.id} has no event start time")
        return cls(
            device_id=record.id,
            device_name=record.name,
            start_time=event.start_time,
            image_url=record.snapshot_url,
            has_motion=event.has_motion,
            has_sound=event.has_sound,
        )
