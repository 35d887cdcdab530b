"""Pytest configuration for the Homa host tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
from homabridge.config.settings import RuntimeConfig
from homabridge.const import INSTALL_DIR_ENV, LOG_STREAM_ENV

# Minimal stand-in for the proxy executable: reads ``-c <path>``, binds the
# SOCKS port named in the document and idles until terminated. It never
# speaks SOCKS, so probes through it time out.
FAKE_PROXY_SOURCE = """\
import json
import socket
import sys
import time

path = sys.argv[sys.argv.index("-c") + 1]
with open(path, encoding="utf-8") as handle:
    document = json.load(handle)
port = document["inbounds"][0]["port"]

server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
server.bind(("127.0.0.1", port))
server.listen(16)
print(f"fake proxy listening on {port}", flush=True)
while True:
    time.sleep(1)
"""


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(INSTALL_DIR_ENV, raising=False)
    monkeypatch.delenv(LOG_STREAM_ENV, raising=False)


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    root = tmp_path / "homa"
    (root / "bin").mkdir(parents=True)
    (root / "config").mkdir()
    return root


def _write_executable(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    path.chmod(0o755)
    return path


@pytest.fixture
def fake_proxy(install_dir: Path) -> Path:
    script = install_dir / "fake_proxy.py"
    script.write_text(FAKE_PROXY_SOURCE, encoding="utf-8")
    return _write_executable(
        install_dir / "bin" / "xray",
        f'#!/bin/sh\nexec "{sys.executable}" "{script}" "$@"\n',
    )


@pytest.fixture
def crashing_proxy(install_dir: Path) -> Path:
    return _write_executable(install_dir / "bin" / "xray", "#!/bin/sh\nexit 3\n")


@pytest.fixture
def runtime_config(install_dir: Path, tmp_path: Path) -> RuntimeConfig:
    return RuntimeConfig(
        install_dir=str(install_dir),
        settle_delay=0.0,
        listener_wait_timeout=10.0,
        probe_timeout=0.5,
        stop_timeout=2.0,
        host_log_file=str(tmp_path / "host.log"),
    )


@pytest.fixture
def outbound() -> dict[str, object]:
    return {
        "protocol": "vless",
        "tag": "proxy",
        "settings": {"vnext": [{"address": "203.0.113.10", "port": 443, "users": [{"id": "u-1"}]}]},
    }

