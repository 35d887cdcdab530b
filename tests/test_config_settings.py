"""Tests for runtime configuration loading and install layout."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from homabridge.config import paths
from homabridge.config.paths import InstallLayout
from homabridge.config.settings import RuntimeConfig, get_default_config, load_runtime_config
from homabridge.const import DEFAULT_MAX_MESSAGE_BYTES, INSTALL_DIR_ENV


def test_defaults_match_documented_values(tmp_path: Path) -> None:
    config = load_runtime_config(str(tmp_path))

    assert config.install_dir == str(tmp_path)
    assert config.proxy_binary == "xray"
    assert config.settle_delay == 0.2
    assert config.listener_wait_timeout == 0.0
    assert config.probe_url == "http://www.gstatic.com/generate_204"
    assert config.probe_timeout == 5.0
    assert config.proxy_log_level == "warning"
    assert config.max_message_bytes == DEFAULT_MAX_MESSAGE_BYTES
    assert config.host_log_file.endswith("homa_host_debug.log")


def test_get_default_config_lists_every_field() -> None:
    defaults = get_default_config()

    assert set(defaults) == set(RuntimeConfig.__struct_fields__)
    assert defaults["stop_timeout"] == 2.0


def test_host_toml_overrides_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "host.toml").write_text(
        "[host]\n"
        'proxy_binary = "/opt/xray/xray"\n'
        "settle_delay = 0.5\n"
        "listener_wait_timeout = 3\n"
        'proxy_log_level = "DEBUG"\n'
        "debug_logging = true\n"
        "unknown_key = 1\n",
        encoding="utf-8",
    )
    monkeypatch.setenv(INSTALL_DIR_ENV, str(tmp_path))

    config = load_runtime_config()

    assert config.install_dir == str(tmp_path)
    assert config.settle_delay == 0.5
    assert config.listener_wait_timeout == 3.0
    assert config.proxy_log_level == "debug"
    assert config.debug_logging is True
    assert config.layout.proxy_executable == Path("/opt/xray/xray")


def test_invalid_value_raises(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "host.toml").write_text("[host]\nprobe_timeout = 0\n", encoding="utf-8")

    with pytest.raises(ValueError, match="probe_timeout"):
        load_runtime_config(str(tmp_path))


def test_unparseable_toml_falls_back_to_defaults(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "host.toml").write_text("[host\nsettle_delay = ", encoding="utf-8")

    config = load_runtime_config(str(tmp_path))

    assert config.settle_delay == 0.2


@pytest.mark.parametrize(
    "overrides",
    [
        {"settle_delay": -1.0},
        {"stop_timeout": 0.0},
        {"probe_url": "ftp://example.com"},
        {"proxy_log_level": "verbose"},
        {"max_message_bytes": 4},
        {"proxy_binary": " "},
    ],
)
def test_runtime_config_validation(tmp_path: Path, overrides: dict[str, object]) -> None:
    with pytest.raises(ValueError):
        RuntimeConfig(install_dir=str(tmp_path), **overrides)


def test_layout_paths(tmp_path: Path) -> None:
    layout = InstallLayout(root=tmp_path)

    assert layout.proxy_executable == tmp_path / "bin" / "xray"
    assert layout.run_config_file == tmp_path / "config" / "config_run.json"
    assert layout.test_config_file(4321) == tmp_path / "config" / "config_test_4321.json"
    assert layout.proxy_log_file == tmp_path / "config" / "homa.log"
    assert layout.host_config_file == tmp_path / "config" / "host.toml"


def test_resolve_install_dir_prefers_argument_then_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(INSTALL_DIR_ENV, str(tmp_path / "from-env"))

    assert paths.resolve_install_dir(str(tmp_path / "explicit")) == tmp_path / "explicit"
    assert paths.resolve_install_dir() == tmp_path / "from-env"


def test_default_install_dir_per_platform(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(paths.Path, "home", classmethod(lambda cls: tmp_path))

    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    assert paths.default_install_dir() == tmp_path / "xdg" / "homa"
    monkeypatch.delenv("XDG_CONFIG_HOME")
    assert paths.default_install_dir() == tmp_path / ".config" / "homa"

    monkeypatch.setattr(sys, "platform", "darwin")
    assert paths.default_install_dir() == tmp_path / "Library" / "Application Support" / "Homa"
