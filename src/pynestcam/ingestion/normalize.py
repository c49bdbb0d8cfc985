"""Normalization helpers.

Centralizes defensive parsing of raw Nest values and the public-share
URL derivations.
"""

from __future__ import annotations

from typing import Any

from pynestcam._constants import AUTOPLAY_QUERY, EMBED_HEIGHT, EMBED_TEMPLATE, EMBED_WIDTH

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off"})


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def safe_bool(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in _TRUE_STRINGS:
            return True
        if normalized in _FALSE_STRINGS:
            return False
    return None


def is_meaningful(value: Any) -> bool:
    """Return True if a raw value should be handed to model validation.

    Missing and empty values are dropped so the optional field stays
    ``None`` rather than becoming a zero value.
    """

    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return bool(value != {})


def prune_mapping(data: dict[str, Any]) -> dict[str, Any]:
    """Drop top-level keys whose values are not meaningful."""
    return {key: value for key, value in data.items() if is_meaningful(value)}


def build_live_feed_url(share_url: str) -> str:
    """Return the autoplaying variant of a public share URL."""
    return f"{share_url}{AUTOPLAY_QUERY}"


def build_embedded_markup(url: str) -> str:
    """Render the fixed-size iframe fragment embedding *url*."""
    return EMBED_TEMPLATE.format(width=EMBED_WIDTH, height=EMBED_HEIGHT, url=url)
