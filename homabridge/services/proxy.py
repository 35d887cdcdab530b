"""Low-level helpers shared by the live supervisor and the test runner.

Covers port allocation, runtime document generation, config handoff on disk,
spawning the proxy executable and tearing its process tree down.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import subprocess
from asyncio.subprocess import Process
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

import msgspec
import psutil
import tenacity

from ..const import (
    DIRECT_OUTBOUND_TAG,
    DNS_QUERY_STRATEGY,
    DNS_SERVERS,
    KILL_WAIT_TIMEOUT,
    LISTENER_POLL_INTERVAL,
    LOOPBACK_HOST,
    SNIFFING_DEST_OVERRIDE,
)
from ..errors import SupervisorError

logger = logging.getLogger("homabridge.proxy")


def allocate_free_port(host: str = LOOPBACK_HOST) -> int:
    """Ask the OS for an unused TCP port by binding to port 0 and releasing it."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, 0))
            return int(sock.getsockname()[1])
    except OSError as exc:
        raise SupervisorError(f"no free port: {exc}") from exc


def build_runtime_document(port: int, fragment: Any, *, log_level: str) -> dict[str, Any]:
    """Merge the caller's outbound *fragment* into the fixed topology."""
    if not isinstance(fragment, dict):
        raise SupervisorError(
            f"invalid outbound config: expected an object, got {type(fragment).__name__}"
        )
    return {
        "log": {"loglevel": log_level},
        "inbounds": [
            {
                "port": port,
                "protocol": "socks",
                "settings": {"auth": "noauth", "udp": True},
                "sniffing": {"enabled": True, "destOverride": list(SNIFFING_DEST_OVERRIDE)},
            }
        ],
        "dns": {"servers": list(DNS_SERVERS), "queryStrategy": DNS_QUERY_STRATEGY},
        "outbounds": [
            fragment,
            {
                "protocol": "freedom",
                "tag": DIRECT_OUTBOUND_TAG,
                "settings": {"domainStrategy": DNS_QUERY_STRATEGY},
            },
        ],
    }


def render_runtime_document(document: dict[str, Any]) -> bytes:
    try:
        return msgspec.json.format(msgspec.json.encode(document), indent=2)
    except (TypeError, msgspec.EncodeError) as exc:
        raise SupervisorError(f"invalid outbound config: {exc}") from exc


def _write_atomic(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with NamedTemporaryFile("wb", dir=path.parent, prefix=f".{path.name}.", delete=False) as handle:
        handle.write(payload)
        temp_name = handle.name
    try:
        Path(temp_name).replace(path)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise


async def write_config_file(path: Path, document: dict[str, Any]) -> None:
    """Persist *document* where the proxy executable will read it."""
    payload = render_runtime_document(document)
    try:
        await asyncio.to_thread(_write_atomic, path, payload)
    except OSError as exc:
        raise SupervisorError(f"failed to write config {path}: {exc}") from exc


async def spawn_proxy(executable: Path, config_path: Path, *, log_file: Path | None = None) -> Process:
    """Launch ``<executable> -c <config_path>``.

    The child's output goes to *log_file* (appended) or is discarded; it
    never inherits the host's stdout, which carries the framed channel.
    """
    name = executable.name
    log_handle = None
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_handle = log_file.open("ab")
        except OSError as exc:
            logger.warning("Cannot open %s (%s); discarding %s output.", log_file, exc, name)
    output: Any = log_handle if log_handle is not None else subprocess.DEVNULL
    try:
        proc = await asyncio.create_subprocess_exec(
            str(executable),
            "-c",
            str(config_path),
            stdin=subprocess.DEVNULL,
            stdout=output,
            stderr=output,
            start_new_session=True,
        )
    except OSError as exc:
        raise SupervisorError(f"failed to start {name}: {exc}") from exc
    finally:
        if log_handle is not None:
            log_handle.close()
    logger.debug("Spawned %s pid=%d config=%s", name, proc.pid, config_path)
    return proc


async def wait_for_listener(port: int, timeout: float, host: str = LOOPBACK_HOST) -> None:
    """Poll until something accepts TCP connections on *port*."""
    retryer = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_delay(timeout),
        wait=tenacity.wait_fixed(LISTENER_POLL_INTERVAL),
        retry=tenacity.retry_if_exception_type(OSError),
        reraise=True,
    )
    try:
        async for attempt in retryer:
            with attempt:
                _, writer = await asyncio.open_connection(host, port)
                writer.close()
                await writer.wait_closed()
    except OSError as exc:
        raise SupervisorError(f"proxy listener on port {port} not ready: {exc}") from exc


async def settle_process(
    proc: Process,
    port: int,
    *,
    name: str,
    settle_delay: float,
    listener_wait_timeout: float = 0.0,
) -> None:
    """Give a freshly spawned child time to bind its listener.

    The fixed pause is the default; a positive *listener_wait_timeout* also
    requires the port to accept connections. A child that already exited
    is reported as a start failure.
    """
    if settle_delay > 0:
        await asyncio.sleep(settle_delay)
    if proc.returncode is not None:
        raise SupervisorError(f"failed to start {name}: exited with code {proc.returncode}")
    if listener_wait_timeout > 0:
        await wait_for_listener(port, listener_wait_timeout)
        if proc.returncode is not None:
            raise SupervisorError(f"failed to start {name}: exited with code {proc.returncode}")


def _terminate_descendants_sync(pid: int, timeout: float) -> None:
    try:
        children = psutil.Process(pid).children(recursive=True)
    except psutil.Error:
        return
    if not children:
        return

    for child in children:
        try:
            child.terminate()
        except psutil.Error:
            continue

    _, alive = psutil.wait_procs(children, timeout=max(0.1, timeout))
    for child in alive:
        try:
            child.kill()
        except psutil.Error:
            continue
    if alive:
        psutil.wait_procs(alive, timeout=KILL_WAIT_TIMEOUT)


async def terminate_process(proc: Process, *, timeout: float) -> int | None:
    """Terminate *proc* and its descendants, then reap it.

    Sends SIGTERM, escalates to SIGKILL after *timeout* and always waits for
    the exit status so no zombie is left behind.
    """
    if proc.returncode is None:
        await asyncio.to_thread(_terminate_descendants_sync, proc.pid, timeout)
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
        try:
            async with asyncio.timeout(timeout):
                await proc.wait()
        except TimeoutError:
            logger.warning("Process %d ignored SIGTERM for %.1fs; killing.", proc.pid, timeout)
            try:
                proc.kill()
            except ProcessLookupError:
                pass
    return await proc.wait()


__all__ = [
    "allocate_free_port",
    "build_runtime_document",
    "render_runtime_document",
    "settle_process",
    "spawn_proxy",
    "terminate_process",
    "wait_for_listener",
    "write_config_file",
]
