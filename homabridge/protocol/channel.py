"""Length-prefixed message channel over the host's stdin/stdout.

The browser launches the host and owns both pipes. Reads happen only from
the dispatch loop; writes may come from the loop and from background test
tasks, so every frame goes out under a single lock as one ``write`` call.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import IO, Protocol, cast

from ..const import DEFAULT_MAX_MESSAGE_BYTES, FRAME_HEADER_SIZE
from ..errors import ChannelError, FrameError
from .frame import decode_payload, encode_message, parse_frame_length
from .messages import Message

logger = logging.getLogger("homabridge.channel")


class FrameWriter(Protocol):
    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...

    def close(self) -> None: ...


class StdinReadProtocol(asyncio.Protocol):
    def __init__(self) -> None:
        self.reader = asyncio.StreamReader()

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.reader.set_transport(cast(asyncio.Transport, transport))

    def data_received(self, data: bytes) -> None:
        self.reader.feed_data(data)

    def eof_received(self) -> bool | None:
        self.reader.feed_eof()
        return None

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            self.reader.set_exception(exc)
        else:
            self.reader.feed_eof()


class StdoutWriteProtocol(asyncio.Protocol):
    """Write side of the stdout pipe with transport back-pressure."""

    def __init__(self) -> None:
        self.transport: asyncio.WriteTransport | None = None
        self._writable = asyncio.Event()
        self._writable.set()
        self._closed = False

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = cast(asyncio.WriteTransport, transport)

    def pause_writing(self) -> None:
        self._writable.clear()

    def resume_writing(self) -> None:
        self._writable.set()

    def connection_lost(self, exc: Exception | None) -> None:
        self._closed = True
        if exc is not None:
            logger.debug("stdout pipe lost: %s", exc)
        self._writable.set()

    def write(self, data: bytes) -> None:
        if self._closed or self.transport is None or self.transport.is_closing():
            raise ConnectionResetError("stdout pipe is closed")
        self.transport.write(data)

    async def drain(self) -> None:
        await self._writable.wait()
        if self._closed:
            raise ConnectionResetError("stdout pipe is closed")

    def close(self) -> None:
        if self.transport is not None and not self.transport.is_closing():
            self.transport.close()


class NativeChannel:
    """Reads and writes native-messaging frames."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: FrameWriter,
        *,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._max_message_bytes = max_message_bytes
        self._write_lock = asyncio.Lock()
        self.failed = asyncio.Event()

    @classmethod
    async def open_stdio(
        cls,
        *,
        max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES,
        stdin: IO[bytes] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> NativeChannel:
        """Attach to the process stdin/stdout pipes (POSIX only)."""
        loop = asyncio.get_running_loop()
        read_proto = StdinReadProtocol()
        write_proto = StdoutWriteProtocol()
        await loop.connect_read_pipe(lambda: read_proto, stdin or sys.stdin.buffer)
        await loop.connect_write_pipe(lambda: write_proto, stdout or sys.stdout.buffer)
        return cls(read_proto.reader, write_proto, max_message_bytes=max_message_bytes)

    async def read_message(self) -> Message | None:
        """Return the next message, or ``None`` once the peer closed the channel.

        Raises :class:`FrameError` on truncated or oversized frames and
        :class:`~homabridge.errors.MalformedMessageError` when a complete
        frame does not hold a valid message.
        """
        try:
            header = await self._reader.readexactly(FRAME_HEADER_SIZE)
        except asyncio.IncompleteReadError as exc:
            if not exc.partial:
                return None
            raise FrameError(f"Stream closed inside length prefix ({len(exc.partial)} bytes)") from exc
        except OSError as exc:
            raise ChannelError(f"Read failed: {exc}") from exc

        length = parse_frame_length(header)
        if length > self._max_message_bytes:
            raise FrameError(f"Frame of {length} bytes exceeds limit of {self._max_message_bytes}")

        try:
            body = await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as exc:
            raise FrameError(f"Stream closed after {len(exc.partial)} of {length} payload bytes") from exc
        except OSError as exc:
            raise ChannelError(f"Read failed: {exc}") from exc
        return decode_payload(body)

    async def write_message(self, message: Message) -> None:
        frame = encode_message(message)
        async with self._write_lock:
            if self.failed.is_set():
                raise ChannelError("Channel already failed; dropping reply")
            try:
                self._writer.write(frame)
                await self._writer.drain()
            except (OSError, RuntimeError) as exc:
                self.failed.set()
                logger.error("Write to stdout failed: %s", exc)
                raise ChannelError(f"Write failed: {exc}") from exc

    def close(self) -> None:
        self._writer.close()


__all__ = [
    "FrameWriter",
    "NativeChannel",
    "StdinReadProtocol",
    "StdoutWriteProtocol",
]
