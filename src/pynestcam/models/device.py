"""Camera device and motion event models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pynestcam.ingestion.normalize import safe_bool, safe_str
from pynestcam.models._base import NestBaseModel, NestTimestamp


class EventRecord(NestBaseModel):
    """The most recent motion/sound event reported for a camera.

    Embedded in :class:`DeviceRecord`; not addressable on its own.
    """

    start_time: NestTimestamp = Field(default=None, validation_alias=AliasChoices("start_time", "startTime"))
    """When the event started (``None`` when missing or unparsable)."""
    end_time: NestTimestamp = Field(default=None, validation_alias=AliasChoices("end_time", "endTime"))
    """When the event ended (``None`` when missing or unparsable)."""
    has_motion: bool | None = Field(default=None, validation_alias=AliasChoices("has_motion", "hasMotion"))
    has_sound: bool | None = Field(default=None, validation_alias=AliasChoices("has_sound", "hasSound"))
    web_url: str | None = Field(default=None, validation_alias=AliasChoices("web_url", "webURL"))
    app_url: str | None = Field(default=None, validation_alias=AliasChoices("app_url", "appURL"))
    image_url: str | None = Field(default=None, validation_alias=AliasChoices("image_url", "imageURL"))
    animated_image_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("animated_image_url", "animatedImageURL"),
    )
    urls_expire_time: NestTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("urls_expire_time", "urlsExpireTime"),
    )

    @property
    def is_well_formed(self) -> bool:
        """Whether both times are known and ``start_time <= end_time``."""
        if self.start_time is None or self.end_time is None:
            return False
        return self.start_time <= self.end_time

    @field_validator("has_motion", "has_sound", mode="before")
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("web_url", "app_url", "image_url", "animated_image_url", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return safe_str(value)


class DeviceRecord(NestBaseModel):
    """Canonical state of one camera.

    Records are immutable.  ``has_new_event`` is only ever ``True`` on the
    copies published for the reconciliation pass that detected the event;
    the store keeps every record with the flag cleared.
    """

    id: str = Field(..., validation_alias=AliasChoices("device_id", "id"))
    """Stable Nest device identifier."""
    name: str | None = Field(default=None, validation_alias=AliasChoices("name"))
    snapshot_url: str | None = Field(default=None, validation_alias=AliasChoices("snapshot_url", "snapshotURL"))
    app_url: str | None = Field(default=None, validation_alias=AliasChoices("app_url", "appURL"))
    web_url: str | None = Field(default=None, validation_alias=AliasChoices("web_url", "webURL"))
    is_online: bool | None = Field(default=None, validation_alias=AliasChoices("is_online", "isOnline"))
    is_streaming: bool | None = Field(default=None, validation_alias=AliasChoices("is_streaming", "isStreaming"))
    is_audio_enabled: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("is_audio_input_enabled", "is_audio_enabled", "isAudioEnabled"),
    )
    last_online_change_at: NestTimestamp = Field(
        default=None,
        validation_alias=AliasChoices("last_is_online_change", "last_online_change_at", "lastOnlineChangeAt"),
    )
    live_feed_url: str | None = Field(default=None, validation_alias=AliasChoices("live_feed_url", "liveFeedURL"))
    """Autoplaying public share URL; only set when public sharing is enabled."""
    embedded_markup: str | None = Field(
        default=None,
        validation_alias=AliasChoices("embedded_markup", "embeddedMarkup"),
    )
    """Iframe fragment for the camera; only set when public sharing is enabled."""
    last_event: EventRecord | None = Field(default=None, validation_alias=AliasChoices("last_event", "lastEvent"))
    has_new_event: bool = Field(default=False, validation_alias=AliasChoices("has_new_event", "hasNewEvent"))
    """Transient marker for the pass that first observed ``last_event``."""

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        text = safe_str(value)
        device_id = text.strip() if text is not None else ""
        if not device_id:
            raise ValueError("device_id must be non-empty")
        return device_id

    @field_validator("name", "snapshot_url", "app_url", "web_url", "live_feed_url", "embedded_markup", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("is_online", "is_streaming", "is_audio_enabled", mode="before")
    @classmethod
    def _coerce_bools(cls, value: Any) -> bool | None:
        return safe_bool(value)

    @field_validator("last_event", mode="before")
    @classmethod
    def _drop_non_mapping_event(cls, value: Any) -> Any:
        if value is None or isinstance(value, (dict, EventRecord)):
            return value
        return None

    def flagged(self) -> DeviceRecord:
        """Return a copy marked as carrying a newly observed event."""
        return self.model_copy(update={"has_new_event": True})

    def cleared(self) -> DeviceRecord:
        """Return a copy with the transient event marker cleared."""
        if not self.has_new_event:
            return self
        return self.model_copy(update={"has_new_event": False})
