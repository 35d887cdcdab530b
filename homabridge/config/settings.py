"""Settings loader for the Homa host.

Configuration is read from the optional TOML file
``<install>/config/host.toml`` (table ``[host]``) on top of built-in
defaults. The install directory itself comes from ``HOMA_INSTALL_DIR`` or
the platform default; no other environment variables override settings.
"""

from __future__ import annotations

import logging
import tempfile
import tomllib
from pathlib import Path
from typing import Any

import msgspec

from ..const import (
    DEFAULT_LISTENER_WAIT_TIMEOUT,
    DEFAULT_MAX_MESSAGE_BYTES,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_PROBE_URL,
    DEFAULT_PROXY_BINARY,
    DEFAULT_PROXY_LOG_LEVEL,
    DEFAULT_SETTLE_DELAY,
    DEFAULT_STOP_TIMEOUT,
    FRAME_HEADER_SIZE,
    HOST_LOG_FILE_NAME,
    PROXY_LOG_LEVELS,
)
from .paths import InstallLayout, resolve_install_dir

logger = logging.getLogger(__name__)

_TOML_SECTION = "host"


class RuntimeConfig(msgspec.Struct, kw_only=True):
    """Strongly typed configuration for the host."""

    install_dir: str = ""
    proxy_binary: str = DEFAULT_PROXY_BINARY
    settle_delay: float = DEFAULT_SETTLE_DELAY
    listener_wait_timeout: float = DEFAULT_LISTENER_WAIT_TIMEOUT
    probe_url: str = DEFAULT_PROBE_URL
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    proxy_log_level: str = DEFAULT_PROXY_LOG_LEVEL
    stop_timeout: float = DEFAULT_STOP_TIMEOUT
    debug_logging: bool = False
    host_log_file: str = ""
    max_message_bytes: int = DEFAULT_MAX_MESSAGE_BYTES

    def __post_init__(self) -> None:
        if not self.install_dir.strip():
            self.install_dir = str(resolve_install_dir())
        if not self.host_log_file.strip():
            self.host_log_file = str(Path(tempfile.gettempdir()) / HOST_LOG_FILE_NAME)
        if not self.proxy_binary.strip():
            raise ValueError("proxy_binary must be a non-empty name or path")
        for name in ("settle_delay", "listener_wait_timeout"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        for name in ("probe_timeout", "stop_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive number")
        if not self.probe_url.startswith(("http://", "https://")):
            raise ValueError("probe_url must be an http(s) URL")
        level = self.proxy_log_level.strip().lower()
        if level not in PROXY_LOG_LEVELS:
            raise ValueError(f"proxy_log_level must be one of {sorted(PROXY_LOG_LEVELS)}")
        self.proxy_log_level = level
        if self.max_message_bytes <= FRAME_HEADER_SIZE:
            raise ValueError("max_message_bytes is too small")

    @property
    def layout(self) -> InstallLayout:
        return InstallLayout(root=Path(self.install_dir), proxy_binary=self.proxy_binary)


def get_default_config() -> dict[str, Any]:
    """Default values derived from the ``RuntimeConfig`` field defaults."""
    return {field.name: field.default for field in msgspec.structs.fields(RuntimeConfig)}


def _load_raw_config(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except FileNotFoundError:
        return {}
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.error("Failed to read %s: %s. Using defaults.", path, exc)
        return {}
    section = document.get(_TOML_SECTION, {})
    if not isinstance(section, dict):
        logger.warning("Section [%s] in %s is not a table; ignoring.", _TOML_SECTION, path)
        return {}
    return section


def load_runtime_config(install_dir: str | None = None) -> RuntimeConfig:
    """Load configuration from ``host.toml`` and defaults."""
    root = resolve_install_dir(install_dir)
    layout = InstallLayout(root=root)

    raw = get_default_config()
    raw.update(_load_raw_config(layout.host_config_file))
    raw["install_dir"] = str(root)

    try:
        return msgspec.convert(raw, RuntimeConfig, strict=False)
    except msgspec.ValidationError as exc:
        raise ValueError(f"Invalid host configuration: {exc}") from exc


__all__ = ["RuntimeConfig", "get_default_config", "load_runtime_config"]
