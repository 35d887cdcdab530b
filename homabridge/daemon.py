#!/usr/bin/env python3
"""Entry point of the Homa native-messaging host.

The browser starts this executable with the calling extension's origin as
argument and talks to it over stdin/stdout until it closes the pipe.

Architecture:
    main() -> run_host() -> HostDispatcher.run()
        ├── NativeChannel (stdin/stdout frames)
        ├── ProcessSupervisor (live proxy)
        └── EphemeralTestRunner (one task per TEST)
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from typing import NoReturn

import uvloop

from . import __version__
from .config.logging import configure_logging
from .config.settings import RuntimeConfig, load_runtime_config
from .errors import ChannelError
from .protocol.channel import NativeChannel
from .services.dispatcher import HostDispatcher

logger = logging.getLogger("homabridge.daemon")


async def run_host(config: RuntimeConfig, channel: NativeChannel | None = None) -> None:
    """Serve one browser session until the channel closes."""
    if channel is None:
        channel = await NativeChannel.open_stdio(max_message_bytes=config.max_message_bytes)

    loop = asyncio.get_running_loop()
    current = asyncio.current_task()
    if current is not None:
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(signum, current.cancel)

    dispatcher = HostDispatcher(channel, config)
    try:
        await dispatcher.run()
    finally:
        for signum in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(signum)
        channel.close()
        logger.info("Homa host stopped.")


def main(argv: Sequence[str] | None = None) -> NoReturn:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        config = load_runtime_config()
    except ValueError as exc:
        sys.stderr.write(f"homa-host: {exc}\n")
        sys.exit(1)
    configure_logging(config)

    logger.info(
        "Starting Homa host %s. Install dir: %s Proxy: %s",
        __version__,
        config.install_dir,
        config.layout.proxy_executable,
    )
    if args:
        logger.info("Ignoring launcher arguments: %s", args)

    exit_code = 0
    try:
        asyncio.run(run_host(config), loop_factory=uvloop.new_event_loop)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Host interrupted; exiting.")
    except ChannelError as exc:
        logger.critical("Native messaging channel failed: %s", exc)
        exit_code = 1
    except OSError as exc:
        logger.critical("System/OS error during host execution: %s", exc, exc_info=True)
        exit_code = 1
    except Exception as exc:
        logger.critical("Unhandled exception. Terminating: %s", exc, exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
