"""Custom exception hierarchy for the Enginio client."""

from __future__ import annotations

from typing import Optional


class EnginioError(Exception):
    """Base class for all custom errors raised by the Enginio client."""


class LocalValidationError(EnginioError):
    """Raised when a request cannot be built from the given payload.

    The client catches this and returns ``None`` instead of a reply, so no
    network traffic happens.
    """


class TransportError(EnginioError):
    """The transport could not complete the exchange.

    Connection failures, timeouts and TLS failures end up here.  Instances are
    carried by finished replies; they are never raised to callers.
    """

    def __init__(self, message: str, network_error: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.network_error = network_error


class BackendError(EnginioError):
    """The backend answered with a non-success HTTP status."""

    def __init__(
        self,
        status: int,
        message: str = "",
        reason: Optional[str] = None,
        payload: object = None,
    ) -> None:
        super().__init__(message or f"HTTP status {status}")
        self.status = status
        self.message = message
        self.reason = reason
        self.payload = payload


class PayloadError(EnginioError):
    """A success response carried a body that could not be decoded."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


__all__ = [
    "BackendError",
    "EnginioError",
    "LocalValidationError",
    "PayloadError",
    "TransportError",
]
