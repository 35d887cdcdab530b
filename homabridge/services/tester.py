"""Throwaway proxy instances used to measure a candidate outbound."""

from __future__ import annotations

import asyncio
import logging
from asyncio.subprocess import Process
from pathlib import Path
from types import TracebackType
from typing import Any

from ..config.settings import RuntimeConfig
from ..errors import SupervisorError
from .probe import probe_latency
from .proxy import (
    allocate_free_port,
    build_runtime_document,
    settle_process,
    spawn_proxy,
    terminate_process,
    write_config_file,
)

logger = logging.getLogger("homabridge.tester")


class EphemeralInstance:
    """A running test proxy bound to its own port and config file.

    :meth:`release` is the only cleanup path; use the instance as an async
    context manager so it runs on every exit.
    """

    def __init__(self, process: Process, port: int, config_path: Path, *, stop_timeout: float) -> None:
        self.process = process
        self.port = port
        self.config_path = config_path
        self._stop_timeout = stop_timeout
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    async def release(self) -> None:
        """Terminate and reap the process, then delete its config file."""
        if self._released:
            return
        self._released = True
        try:
            await asyncio.shield(terminate_process(self.process, timeout=self._stop_timeout))
        finally:
            self.config_path.unlink(missing_ok=True)
            logger.debug("Released test instance on port %d", self.port)

    async def __aenter__(self) -> EphemeralInstance:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.release()


class EphemeralTestRunner:
    """Starts independent proxy instances and probes through them."""

    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config
        self.layout = config.layout

    async def start_test(self, fragment: Any) -> EphemeralInstance:
        executable = self.layout.proxy_executable
        port = allocate_free_port()
        document = build_runtime_document(port, fragment, log_level=self.config.proxy_log_level)
        config_path = self.layout.test_config_file(port)
        await write_config_file(config_path, document)

        try:
            proc = await spawn_proxy(executable, config_path)
        except SupervisorError:
            config_path.unlink(missing_ok=True)
            raise

        instance = EphemeralInstance(proc, port, config_path, stop_timeout=self.config.stop_timeout)
        try:
            await settle_process(
                proc,
                port,
                name=executable.name,
                settle_delay=self.config.settle_delay,
                listener_wait_timeout=self.config.listener_wait_timeout,
            )
        except BaseException:
            await instance.release()
            raise
        return instance

    async def run(self, fragment: Any) -> int:
        """Probe *fragment* end to end; returns the latency in milliseconds."""
        async with await self.start_test(fragment) as instance:
            return await probe_latency(
                instance.port,
                url=self.config.probe_url,
                timeout=self.config.probe_timeout,
            )


__all__ = ["EphemeralInstance", "EphemeralTestRunner"]
