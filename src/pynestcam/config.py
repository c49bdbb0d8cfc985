"""Client configuration for pynestcam."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable
from typing import Any

from pynestcam._constants import API_URL, SINK_URL
from pynestcam.exceptions import NestCamConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: Callable[[str], Any]) -> Any:
    try:
        return cast(value)
    except ValueError as exc:
        raise NestCamConfigError(f"{env_key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class NestCamConfig:
    """Service configuration.

    Parameters
    ----------
    access_token : str
        Nest API OAuth access token.
    api_url : str
        Nest REST streaming endpoint.
    sink_url : str
        GraphQL endpoint of the remote motion event log.
    sink_enabled : bool
        Forward detected events to the remote event log.
    sink_timeout : float
        Seconds allowed for a single remote event log call.
    sink_queue_size : int
        Pending remote event log jobs kept before new ones are dropped.
    event_buffer_size : int
        Undelivered events buffered per event subscriber.
    reconnect_delay : float
        Seconds to wait before reopening the stream after a failure.
    stream_timeout : float
        Seconds without any data (keep-alives included) before the
        stream is considered dead.  ``0`` disables the read timeout.
    """

    access_token: str
    api_url: str = API_URL
    sink_url: str = SINK_URL
    sink_enabled: bool = True
    sink_timeout: float = 10.0
    sink_queue_size: int = 100
    event_buffer_size: int = 64
    reconnect_delay: float = 5.0
    stream_timeout: float = 90.0

    def __post_init__(self) -> None:
        if not self.access_token or not self.access_token.strip():
            raise NestCamConfigError("access_token must be non-empty")
        if self.sink_timeout <= 0:
            raise NestCamConfigError("sink_timeout must be positive")
        if self.sink_queue_size < 1:
            raise NestCamConfigError("sink_queue_size must be at least 1")
        if self.event_buffer_size < 1:
            raise NestCamConfigError("event_buffer_size must be at least 1")
        if self.reconnect_delay < 0:
            raise NestCamConfigError("reconnect_delay must not be negative")
        if self.stream_timeout < 0:
            raise NestCamConfigError("stream_timeout must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> NestCamConfig:
        """Create configuration from environment variables.

        Reads ``NEST_ACCESS_TOKEN`` and optional ``NEST_*`` variables.
        Explicit keyword arguments override environment values.

        Raises
        ------
        NestCamConfigError
            When the token is missing or a numeric variable does not parse.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "NEST_ACCESS_TOKEN": "access_token",
            "NEST_API_URL": "api_url",
            "NEST_SINK_URL": "sink_url",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP: dict[str, tuple[str, Callable[[str], Any]]] = {
            "NEST_SINK_TIMEOUT": ("sink_timeout", float),
            "NEST_SINK_QUEUE_SIZE": ("sink_queue_size", int),
            "NEST_EVENT_BUFFER_SIZE": ("event_buffer_size", int),
            "NEST_RECONNECT_DELAY": ("reconnect_delay", float),
            "NEST_STREAM_TIMEOUT": ("stream_timeout", float),
        }
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)

        if "sink_enabled" not in overrides:
            config_kwargs["sink_enabled"] = _env_bool(env.get("NEST_SINK_ENABLED"), True)

        config_kwargs.update(overrides)

        if "access_token" not in config_kwargs:
            raise NestCamConfigError("NEST_ACCESS_TOKEN is not set")

        return cls(**config_kwargs)
