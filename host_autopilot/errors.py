"""
Error taxonomy for the host autopilot.

Behavioral Contract:
- SigningError is fatal to the current call, never to the run
- TransportError is retried while connecting, fatal for in-flight calls
- RemoteError carries the peer's structured error payload
- DecodeError means the response did not have the expected shape

Ineligibility is not an error: it is an EligibilityVerdict with eligible=False.
"""

from typing import Any, Optional


class AutopilotError(Exception):
    """Base class for all autopilot failures."""
    pass


class ConfigError(AutopilotError):
    """Raised when required configuration is missing or unreadable."""
    pass


class SigningError(AutopilotError):
    """Raised when the keystore is unreachable or refuses to sign."""
    pass


class TransportError(AutopilotError):
    """Raised when the underlying channel cannot be opened or written."""
    pass


class RemoteError(AutopilotError):
    """Raised when the peer answers with an explicit error frame."""

    def __init__(self, message: str, payload: Optional[Any] = None):
        super().__init__(message)
        self.payload = payload


class DecodeError(AutopilotError):
    """Raised when a response payload does not decode to the expected type."""
    pass


class BundleError(AutopilotError):
    """Raised when an application bundle cannot be fetched or read."""
    pass


DeserializationError = DecodeError
