"""Project-native typed exceptions for container-host gateway failures."""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for gateway-level container-host failures.

    Attributes:
        status_code: Optional engine status code associated with the failure.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GatewayConnectionError(GatewayError, ConnectionError):
    """Transport-level connectivity failure while talking to the engine."""


class GatewayTimeoutError(GatewayError, TimeoutError):
    """Engine request exceeded the configured transport timeout."""


class GatewayRequestError(GatewayError, RuntimeError):
    """Engine rejected a request or reported an operation failure."""


class GatewayNotFoundError(GatewayRequestError):
    """Engine reported the referenced service, network or image as missing."""
