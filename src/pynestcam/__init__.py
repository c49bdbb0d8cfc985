"""pynestcam - Async camera state reconciliation for the Nest streaming API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pynestcam")
except PackageNotFoundError:
    __version__ = "0+local"
from pynestcam.config import NestCamConfig
from pynestcam.exceptions import (
    NestCamAuthenticationError,
    NestCamConfigError,
    NestCamError,
    NestCamSinkError,
    NestCamStreamError,
    NestCamTransportError,
)
from pynestcam.hub import BroadcastHub, Subscription
from pynestcam.ingestion.snapshot import NormalizedSnapshot, normalize_snapshot
from pynestcam.models import DeviceRecord, EventRecord
from pynestcam.service import DeviceService
from pynestcam.sink import EventSink, GraphQLEventSink, SinkDispatcher
from pynestcam.state.detector import detect
from pynestcam.state.events import ChangePair, EventOccurrence, ReconcileResult
from pynestcam.state.store import DeviceStore

__all__ = [
    "__version__",
    "BroadcastHub",
    "ChangePair",
    "DeviceRecord",
    "DeviceService",
    "DeviceStore",
    "EventOccurrence",
    "EventRecord",
    "EventSink",
    "GraphQLEventSink",
    "NestCamAuthenticationError",
    "NestCamConfig",
    "NestCamConfigError",
    "NestCamError",
    "NestCamSinkError",
    "NestCamStreamError",
    "NestCamTransportError",
    "NormalizedSnapshot",
    "ReconcileResult",
    "SinkDispatcher",
    "Subscription",
    "detect",
    "normalize_snapshot",
]
