"""Top-level request loop of the host."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from ..config.settings import RuntimeConfig
from ..const import ERROR_CONFIG_MISSING, ERROR_MALFORMED_MESSAGE, ERROR_UNKNOWN_COMMAND, PONG_DATA
from ..errors import BridgeError, ChannelError, MalformedMessageError, SupervisorError
from ..protocol.channel import NativeChannel
from ..protocol.messages import Command, Message, Status
from .routers import CommandRegistry, Outcome, ReplyDeferred, ReplyNow
from .supervisor import ProcessSupervisor
from .tester import EphemeralTestRunner

logger = logging.getLogger("homabridge.dispatcher")


class HostDispatcher:
    """Reads requests one at a time and answers each exactly once.

    ``TEST`` is answered from a background task; everything else is
    answered in arrival order before the next read.
    """

    def __init__(
        self,
        channel: NativeChannel,
        config: RuntimeConfig,
        *,
        supervisor: ProcessSupervisor | None = None,
        runner: EphemeralTestRunner | None = None,
    ) -> None:
        self.channel = channel
        self.config = config
        self.supervisor = supervisor or ProcessSupervisor(config)
        self.runner = runner or EphemeralTestRunner(config)
        self.registry = CommandRegistry()
        self.registry.bulk_register(
            {
                Command.PING: self._handle_ping,
                Command.TEST: self._handle_test,
                Command.START: self._handle_start,
                Command.STOP: self._handle_stop,
            }
        )
        self._background: set[asyncio.Task[None]] = set()
        self._shutdown_done = False

    @property
    def pending_tests(self) -> int:
        return len(self._background)

    async def run(self) -> None:
        """Serve requests until the peer closes the channel.

        Returns normally on end of stream and raises :class:`ChannelError`
        when the channel breaks. The live proxy is stopped either way.
        """
        try:
            while True:
                try:
                    message = await self._next_message()
                except MalformedMessageError as exc:
                    logger.warning("Malformed request id=%s: %s", exc.request_id, exc)
                    request = Message(cmd=exc.command or "", id=exc.request_id)
                    await self._send(request.error_reply(f"{ERROR_MALFORMED_MESSAGE}: {exc}"))
                    continue
                if message is None:
                    logger.info("Channel closed by peer.")
                    break
                await self.handle(message)
        finally:
            await self.shutdown()

    async def _next_message(self) -> Message | None:
        read_task = asyncio.create_task(self.channel.read_message())
        failure_task = asyncio.create_task(self.channel.failed.wait())
        try:
            await asyncio.wait({read_task, failure_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (read_task, failure_task):
                if not task.done():
                    task.cancel()
        if self.channel.failed.is_set():
            raise ChannelError("Channel write failed")
        return read_task.result()

    async def handle(self, message: Message) -> None:
        """Route one request and write its synchronous reply, if any."""
        logger.debug("RX cmd=%s id=%s", message.cmd, message.id)
        outcome = await self._dispatch(message)
        match outcome:
            case ReplyNow(message=reply):
                await self._send(reply)
            case ReplyDeferred():
                logger.debug("Reply for cmd=%s id=%s deferred", message.cmd, message.id)

    async def _dispatch(self, message: Message) -> Outcome:
        handler = self.registry.get(message.command)
        if handler is None:
            logger.warning("Unknown command %r", message.cmd)
            return ReplyNow(message.error_reply(ERROR_UNKNOWN_COMMAND))
        try:
            return await handler(message)
        except BridgeError as exc:
            logger.error("%s failed: %s", message.cmd, exc)
            return ReplyNow(message.error_reply(str(exc)))
        except Exception as exc:
            logger.exception("Unhandled error while processing %s", message.cmd)
            return ReplyNow(message.error_reply(str(exc) or type(exc).__name__))

    async def _send(self, reply: Message) -> None:
        logger.debug("TX cmd=%s id=%s status=%s", reply.cmd, reply.id, reply.status)
        await self.channel.write_message(reply)

    async def _handle_ping(self, message: Message) -> Outcome:
        return ReplyNow(message.reply(Status.PONG, data=PONG_DATA))

    async def _handle_start(self, message: Message) -> Outcome:
        if message.config is None:
            return ReplyNow(message.error_reply(ERROR_CONFIG_MISSING))
        port = await self.supervisor.start(message.config)
        return ReplyNow(message.reply(Status.OK, port=port))

    async def _handle_stop(self, message: Message) -> Outcome:
        await self.supervisor.stop()
        return ReplyNow(message.reply(Status.OK))

    async def _handle_test(self, message: Message) -> Outcome:
        if message.config is None:
            return ReplyNow(message.error_reply(ERROR_CONFIG_MISSING))
        self.schedule_background(self._run_test(message), name=f"test-{message.id}")
        return ReplyDeferred()

    async def _run_test(self, message: Message) -> None:
        try:
            latency = await self.runner.run(message.config)
        except BridgeError as exc:
            logger.info("TEST id=%s failed: %s", message.id, exc)
            reply = message.error_reply(str(exc))
        except Exception as exc:
            logger.exception("Unhandled error in TEST id=%s", message.id)
            reply = message.error_reply(str(exc) or type(exc).__name__)
        else:
            logger.info("TEST id=%s ok: %d ms", message.id, latency)
            reply = message.reply(Status.OK, data=latency)

        try:
            await self._send(reply)
        except ChannelError as exc:
            logger.warning("Could not deliver TEST reply id=%s: %s", message.id, exc)

    def schedule_background(self, coro: Coroutine[Any, Any, None], *, name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def shutdown(self) -> None:
        """Cancel in-flight tests and stop the live proxy (once)."""
        if self._shutdown_done:
            return
        self._shutdown_done = True

        tasks = list(self._background)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        try:
            await self.supervisor.stop()
        except SupervisorError as exc:
            logger.error("Failed to stop proxy during shutdown: %s", exc)
        logger.info("Dispatcher stopped.")


__all__ = ["HostDispatcher"]
