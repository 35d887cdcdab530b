"""Supervisor for the persistent proxy instance."""

from __future__ import annotations

import asyncio
import logging
from asyncio.subprocess import Process
from typing import Any

from ..config.settings import RuntimeConfig
from ..errors import SupervisorError
from .proxy import (
    allocate_free_port,
    build_runtime_document,
    settle_process,
    spawn_proxy,
    terminate_process,
    write_config_file,
)

logger = logging.getLogger("homabridge.supervisor")


class ProcessSupervisor:
    """Owns at most one live proxy process.

    Only the dispatch loop calls :meth:`start` and :meth:`stop`, one request
    at a time, so the handle needs no lock.
    """

    def __init__(self, config: RuntimeConfig) -> None:
        self.config = config
        self.layout = config.layout
        self._process: Process | None = None
        self._port: int | None = None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def port(self) -> int | None:
        return self._port if self._process is not None else None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self, fragment: Any) -> int:
        """Replace any running instance with one routed through *fragment*.

        Returns the local SOCKS port. On failure no handle is installed.
        """
        await self.stop()

        executable = self.layout.proxy_executable
        port = allocate_free_port()
        document = build_runtime_document(port, fragment, log_level=self.config.proxy_log_level)
        config_path = self.layout.run_config_file
        await write_config_file(config_path, document)

        proc = await spawn_proxy(executable, config_path, log_file=self.layout.proxy_log_file)
        try:
            await settle_process(
                proc,
                port,
                name=executable.name,
                settle_delay=self.config.settle_delay,
                listener_wait_timeout=self.config.listener_wait_timeout,
            )
        except BaseException:
            await asyncio.shield(terminate_process(proc, timeout=self.config.stop_timeout))
            raise

        self._process = proc
        self._port = port
        logger.info("Proxy started pid=%d port=%d", proc.pid, port)
        return port

    async def stop(self) -> None:
        """Terminate and reap the live instance; a no-op when none exists."""
        proc = self._process
        self._process = None
        self._port = None
        if proc is None:
            return
        try:
            code = await asyncio.shield(terminate_process(proc, timeout=self.config.stop_timeout))
        except OSError as exc:
            raise SupervisorError(f"failed to stop {self.layout.proxy_executable.name}: {exc}") from exc
        logger.info("Proxy pid=%d stopped (exit code %s)", proc.pid, code)


__all__ = ["ProcessSupervisor"]
