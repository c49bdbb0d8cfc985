"""Custom exception hierarchy for pynestcam."""

from __future__ import annotations


class NestCamError(Exception):
    """Base exception for all pynestcam errors."""


class NestCamConfigError(NestCamError):
    """Invalid or missing configuration."""


class NestCamTransportError(NestCamError):
    """HTTP-level failure on the upstream stream (network, non-200, bad framing)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class NestCamAuthenticationError(NestCamTransportError):
    """Access token rejected or revoked by the Nest API.

    Unlike other transport failures this is not recoverable by
    reconnecting; a new token is required.
    """


class NestCamStreamError(NestCamError):
    """The event stream reported an error or ended unexpectedly."""


class NestCamSinkError(NestCamError):
    """Remote event logging failed.

    Only raised by sink implementations; the dispatcher logs it and
    never lets it reach the reconciliation path.
    """
