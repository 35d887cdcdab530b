"""Install directory layout for the Homa host.

The installer creates the layout below; the host only consumes it::

    <install>/
        bin/xray            proxy executable
        config/             generated proxy configs, host.toml, homa.log
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from ..const import (
    BIN_DIR_NAME,
    CONFIG_DIR_NAME,
    DEFAULT_PROXY_BINARY,
    HOST_CONFIG_FILE_NAME,
    INSTALL_DIR_ENV,
    PROXY_LOG_FILE_NAME,
    RUN_CONFIG_FILE_NAME,
    TEST_CONFIG_FILE_TEMPLATE,
)


def default_install_dir() -> Path:
    """Return the per-user install directory for the current platform."""
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "Homa"
    if sys.platform.startswith("linux"):
        xdg = os.environ.get("XDG_CONFIG_HOME", "").strip()
        base = Path(xdg).expanduser() if xdg else home / ".config"
        return base / "homa"
    return home / "homa"


def resolve_install_dir(configured: str | None = None) -> Path:
    candidate = (configured or os.environ.get(INSTALL_DIR_ENV) or "").strip()
    if candidate:
        return Path(candidate).expanduser().absolute()
    return default_install_dir()


@dataclass(slots=True, frozen=True)
class InstallLayout:
    """Fixed sub-paths of an install directory."""

    root: Path
    proxy_binary: str = DEFAULT_PROXY_BINARY

    @property
    def bin_dir(self) -> Path:
        return self.root / BIN_DIR_NAME

    @property
    def config_dir(self) -> Path:
        return self.root / CONFIG_DIR_NAME

    @property
    def proxy_executable(self) -> Path:
        binary = Path(self.proxy_binary)
        if binary.is_absolute():
            return binary
        return self.bin_dir / binary

    @property
    def proxy_log_file(self) -> Path:
        return self.config_dir / PROXY_LOG_FILE_NAME

    @property
    def host_config_file(self) -> Path:
        return self.config_dir / HOST_CONFIG_FILE_NAME

    @property
    def run_config_file(self) -> Path:
        return self.config_dir / RUN_CONFIG_FILE_NAME

    def test_config_file(self, port: int) -> Path:
        return self.config_dir / TEST_CONFIG_FILE_TEMPLATE.format(port=port)


__all__ = ["InstallLayout", "default_install_dir", "resolve_install_dir"]
