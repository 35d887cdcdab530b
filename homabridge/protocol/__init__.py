"""Native-messaging wire protocol: message model, framing and stdio channel."""

from .channel import NativeChannel
from .frame import decode_frame, decode_payload, encode_frame, encode_message
from .messages import Command, Message, Status

__all__ = [
    "Command",
    "Message",
    "NativeChannel",
    "Status",
    "decode_frame",
    "decode_payload",
    "encode_frame",
    "encode_message",
]
