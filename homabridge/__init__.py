"""Homa native-messaging host package."""

__version__ = "1.0.0"
