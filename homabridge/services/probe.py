"""Connectivity probe through a local SOCKS listener."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from ..const import LOOPBACK_HOST, PROBE_SUCCESS_CODES
from ..errors import ProbeError

logger = logging.getLogger("homabridge.probe")


async def probe_latency(port: int, *, url: str, timeout: float) -> int:
    """GET *url* through ``socks5://127.0.0.1:<port>`` and return the latency in ms.

    *timeout* bounds each network phase and the request as a whole.
    Transport errors, timeouts and statuses other than 200/204 raise
    :class:`ProbeError` carrying the cause.
    """
    proxy = f"socks5://{LOOPBACK_HOST}:{port}"
    async with httpx.AsyncClient(proxy=proxy, timeout=timeout, trust_env=False) as client:
        started = time.monotonic()
        try:
            async with asyncio.timeout(timeout):
                response = await client.get(url)
        except TimeoutError as exc:
            raise ProbeError(f"timed out after {timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise ProbeError(str(exc) or type(exc).__name__) from exc
        latency_ms = int((time.monotonic() - started) * 1000)

    if response.status_code not in PROBE_SUCCESS_CODES:
        raise ProbeError(f"HTTP {response.status_code}")
    logger.debug("Probe via port %d succeeded in %d ms", port, latency_ms)
    return latency_ms


__all__ = ["probe_latency"]
