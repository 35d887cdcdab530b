"""Exception hierarchy for the Homa host."""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for errors that become ``status=error`` replies."""


class ChannelError(BridgeError):
    """The native-messaging channel is unusable; the host must shut down."""


class FrameError(ChannelError):
    """A frame violated the length-prefix contract (truncated or oversized)."""


class MalformedMessageError(BridgeError):
    """A complete frame arrived but its payload is not a valid message.

    ``request_id`` and ``command`` hold whatever string ``id``/``cmd`` could
    still be read from the payload, so the error reply stays correlated.
    """

    def __init__(self, message: str, *, request_id: str | None = None, command: str | None = None) -> None:
        super().__init__(message)
        self.request_id = request_id
        self.command = command


class SupervisorError(BridgeError):
    """Starting or stopping a proxy instance failed."""


class ProbeError(BridgeError):
    """The connectivity probe through a test instance failed."""


__all__ = [
    "BridgeError",
    "ChannelError",
    "FrameError",
    "MalformedMessageError",
    "ProbeError",
    "SupervisorError",
]
