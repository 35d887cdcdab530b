"""Configuration helpers for the Homa host."""

from .paths import InstallLayout, default_install_dir, resolve_install_dir
from .settings import RuntimeConfig, get_default_config, load_runtime_config

__all__ = [
    "InstallLayout",
    "RuntimeConfig",
    "default_install_dir",
    "get_default_config",
    "load_runtime_config",
    "resolve_install_dir",
]
