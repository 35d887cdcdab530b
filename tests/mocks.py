"""Shared test doubles for the Homa host tests."""

from __future__ import annotations

import asyncio
import socket
from typing import Any

import msgspec
from homabridge.const import FRAME_HEADER_SIZE
from homabridge.protocol.frame import decode_payload, encode_frame, encode_message, parse_frame_length
from homabridge.protocol.messages import Message


class RecordingWriter:
    """Stands in for the stdout pipe and keeps every byte written."""

    def __init__(self, *, fail: bool = False) -> None:
        self.buffer = bytearray()
        self.fail = fail
        self.writes = 0
        self.closed = False
        self.changed = asyncio.Event()

    def write(self, data: bytes) -> None:
        if self.fail:
            raise BrokenPipeError("stdout pipe closed")
        self.buffer.extend(data)
        self.writes += 1
        self.changed.set()

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def close(self) -> None:
        self.closed = True

    def messages(self) -> list[Message]:
        out: list[Message] = []
        view = bytes(self.buffer)
        offset = 0
        while offset < len(view):
            length = parse_frame_length(view[offset : offset + FRAME_HEADER_SIZE])
            start = offset + FRAME_HEADER_SIZE
            out.append(decode_payload(view[start : start + length]))
            offset = start + length
        return out

    async def wait_for_messages(self, count: int, timeout: float = 5.0) -> list[Message]:
        async with asyncio.timeout(timeout):
            while len(self.messages()) < count:
                self.changed.clear()
                await self.changed.wait()
        return self.messages()


def frames(*messages: Message | dict[str, Any] | bytes) -> bytes:
    """Concatenate frames built from messages, raw dicts or raw payload bytes."""
    chunks: list[bytes] = []
    for item in messages:
        if isinstance(item, Message):
            chunks.append(encode_message(item))
        elif isinstance(item, dict):
            chunks.append(encode_frame(msgspec.json.encode(item)))
        else:
            chunks.append(encode_frame(item))
    return b"".join(chunks)


def make_reader(data: bytes = b"", *, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    if data:
        reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


def port_accepts(port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1.0)
        return sock.connect_ex(("127.0.0.1", port)) == 0


async def wait_until_accepts(port: int, timeout: float = 5.0) -> bool:
    """Poll until *port* accepts a connection or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if port_accepts(port):
            return True
        await asyncio.sleep(0.05)
    return False
