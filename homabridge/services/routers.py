"""Command registry and dispatch outcomes."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import msgspec

from ..protocol.messages import Command, Message


class ReplyNow(msgspec.Struct, frozen=True):
    """Write ``message`` before reading the next request."""

    message: Message


class ReplyDeferred(msgspec.Struct, frozen=True):
    """No synchronous reply; a background task answers later with the same id."""


Outcome = ReplyNow | ReplyDeferred
CommandHandler = Callable[[Message], Awaitable[Outcome]]


class CommandRegistry:
    """Registry that maps commands to asyncio handlers."""

    def __init__(self) -> None:
        self._handlers: dict[Command, CommandHandler] = {}

    def register(self, command: Command, handler: CommandHandler) -> None:
        self._handlers[command] = handler

    def bulk_register(self, mapping: dict[Command, CommandHandler]) -> None:
        self._handlers.update(mapping)

    def get(self, command: Command | None) -> CommandHandler | None:
        if command is None:
            return None
        return self._handlers.get(command)


__all__ = ["CommandHandler", "CommandRegistry", "Outcome", "ReplyDeferred", "ReplyNow"]
