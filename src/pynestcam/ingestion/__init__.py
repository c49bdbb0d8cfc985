"""Ingestion layer.

This package contains the helpers that turn payloads received from the
Nest streaming API into canonical device records.
"""

__all__: list[str] = []
