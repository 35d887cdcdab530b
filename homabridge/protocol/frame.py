"""Native-messaging frame codec.

Frame Structure:
    [length (4 bytes, unsigned little-endian)] [UTF-8 JSON payload (length bytes)]

There is no delimiter beyond the length prefix. A zero length is a valid
empty payload and decodes to the zero-value message.
"""

from __future__ import annotations

from typing import Final

import msgspec
from construct import ConstructError, GreedyBytes, Int32ul, Prefixed

from ..const import FRAME_HEADER_SIZE
from ..errors import FrameError, MalformedMessageError
from .messages import Message

FRAME_HEADER_STRUCT: Final = Int32ul
NATIVE_FRAME_STRUCT: Final = Prefixed(Int32ul, GreedyBytes)

_ENCODER: Final = msgspec.json.Encoder()
_DECODER: Final = msgspec.json.Decoder(Message)


def encode_frame(payload: bytes) -> bytes:
    """Prefix *payload* with its little-endian length."""
    try:
        return NATIVE_FRAME_STRUCT.build(payload)
    except ConstructError as exc:
        raise FrameError(f"Payload of {len(payload)} bytes cannot be framed") from exc


def parse_frame_length(header: bytes) -> int:
    if len(header) != FRAME_HEADER_SIZE:
        raise FrameError(f"Length prefix must be {FRAME_HEADER_SIZE} bytes, got {len(header)}")
    return int(FRAME_HEADER_STRUCT.parse(header))


def encode_payload(message: Message) -> bytes:
    return _ENCODER.encode(message)


def decode_payload(payload: bytes) -> Message:
    """Decode a frame body into a :class:`Message`."""
    if not payload:
        return Message(cmd="")
    try:
        return _DECODER.decode(payload)
    except msgspec.DecodeError as exc:
        request_id, command = _envelope_strings(payload)
        raise MalformedMessageError(str(exc), request_id=request_id, command=command) from exc


def _envelope_strings(payload: bytes) -> tuple[str | None, str | None]:
    """Best-effort ``id`` and ``cmd`` of a payload that failed validation."""
    try:
        raw = msgspec.json.decode(payload)
    except msgspec.DecodeError:
        return None, None
    if not isinstance(raw, dict):
        return None, None
    request_id, command = raw.get("id"), raw.get("cmd")
    return (
        request_id if isinstance(request_id, str) else None,
        command if isinstance(command, str) else None,
    )


def encode_message(message: Message) -> bytes:
    """Serialise *message* into one complete frame."""
    return encode_frame(encode_payload(message))


def decode_frame(raw: bytes) -> Message:
    """Parse one complete frame held in memory."""
    length = parse_frame_length(raw[:FRAME_HEADER_SIZE])
    body = raw[FRAME_HEADER_SIZE:]
    if len(body) != length:
        raise FrameError(f"Frame size mismatch: header says {length} bytes, buffer has {len(body)}")
    return decode_payload(body)


__all__ = [
    "FRAME_HEADER_STRUCT",
    "NATIVE_FRAME_STRUCT",
    "decode_frame",
    "decode_payload",
    "encode_frame",
    "encode_message",
    "encode_payload",
    "parse_frame_length",
]
