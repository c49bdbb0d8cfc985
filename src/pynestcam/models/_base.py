"""Base model and timestamp handling for Nest payloads.

Every canonical model inherits from :class:`NestBaseModel` which
provides:

* frozen instances, so records handed to subscribers are read-only.
* ``populate_by_name`` so the raw Nest snake_case keys (declared as
  validation aliases) and the Python field names are both accepted.
* A ``model_validator(mode="before")`` that strips missing/empty values
  so the field default (``None``) is used.

Timestamps go through :data:`NestTimestamp`, which turns anything that
does not parse into ``None`` instead of failing validation.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator

from pynestcam.ingestion.normalize import prune_mapping

_logger = logging.getLogger(__name__)

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_nest_timestamp(value: Any) -> datetime | None:
    """Convert a Nest timestamp to a timezone-aware datetime.

    Nest sends ISO 8601 strings (``"2017-09-28T20:34:41.000Z"``).  Epoch
    numbers (seconds or milliseconds) are accepted too.  Returns ``None``
    for missing or unparsable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _ensure_aware(value)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError, ValueError):
            _logger.debug("Unparsable epoch timestamp %r", value)
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return _ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            _logger.debug("Unparsable timestamp %r", value)
            return None
    return None


NestTimestamp = Annotated[datetime | None, BeforeValidator(parse_nest_timestamp)]
"""Annotated type that coerces Nest timestamps to aware datetimes (or ``None``)."""


class NestBaseModel(BaseModel):
    """Base for canonical records built from Nest payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_missing_values(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return prune_mapping(values)
