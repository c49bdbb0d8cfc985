"""Data models for Nest camera state."""

from pynestcam.models._base import NestBaseModel, NestTimestamp, parse_nest_timestamp
from pynestcam.models.device import DeviceRecord, EventRecord

__all__ = [
    "DeviceRecord",
    "EventRecord",
    "NestBaseModel",
    "NestTimestamp",
    "parse_nest_timestamp",
]
