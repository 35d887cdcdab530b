"""Request/response envelope exchanged with the browser extension."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

import msgspec


class Command(StrEnum):
    PING = "PING"
    TEST = "TEST"
    START = "START"
    STOP = "STOP"


class Status(StrEnum):
    OK = "ok"
    PONG = "pong"
    ERROR = "error"


class Message(msgspec.Struct, omit_defaults=True):
    """One native-messaging message.

    Fields are omitted from the wire while unset. A missing ``cmd`` decodes
    as ``""`` and is answered as an unknown command.
    ``config`` is the opaque routing fragment, ``data`` a free-form payload.
    """

    cmd: str = ""
    id: str | None = None
    config: Any = None
    port: int | None = None
    status: str | None = None
    error: str | None = None
    data: Any = None

    @property
    def command(self) -> Command | None:
        """The recognised command, or ``None`` for anything else."""
        try:
            return Command(self.cmd)
        except ValueError:
            return None

    def reply(self, status: Status, **fields: Any) -> Message:
        """Build a reply correlated to this request (same ``id`` and ``cmd``)."""
        return Message(cmd=self.cmd, id=self.id, status=status.value, **fields)

    def error_reply(self, error: str) -> Message:
        return self.reply(Status.ERROR, error=error)


__all__ = ["Command", "Message", "Status"]
