"""Shared constants for the Homa native-messaging host."""

from __future__ import annotations

from typing import Final

# Install layout (created by the installer).
BIN_DIR_NAME: Final[str] = "bin"
CONFIG_DIR_NAME: Final[str] = "config"
PROXY_LOG_FILE_NAME: Final[str] = "homa.log"
HOST_CONFIG_FILE_NAME: Final[str] = "host.toml"
RUN_CONFIG_FILE_NAME: Final[str] = "config_run.json"
TEST_CONFIG_FILE_TEMPLATE: Final[str] = "config_test_{port}.json"
HOST_LOG_FILE_NAME: Final[str] = "homa_host_debug.log"

INSTALL_DIR_ENV: Final[str] = "HOMA_INSTALL_DIR"
LOG_STREAM_ENV: Final[str] = "HOMA_LOG_STREAM"

# Proxy engine
DEFAULT_PROXY_BINARY: Final[str] = "xray"
DEFAULT_PROXY_LOG_LEVEL: Final[str] = "warning"
PROXY_LOG_LEVELS: Final[frozenset[str]] = frozenset({"debug", "info", "warning", "error", "none"})
LOOPBACK_HOST: Final[str] = "127.0.0.1"
DNS_SERVERS: Final[tuple[str, ...]] = ("8.8.8.8", "1.1.1.1")
DNS_QUERY_STRATEGY: Final[str] = "UseIPv4"
SNIFFING_DEST_OVERRIDE: Final[tuple[str, ...]] = ("http", "tls")
DIRECT_OUTBOUND_TAG: Final[str] = "direct"

# Timing (seconds)
DEFAULT_SETTLE_DELAY: Final[float] = 0.2
DEFAULT_LISTENER_WAIT_TIMEOUT: Final[float] = 0.0
LISTENER_POLL_INTERVAL: Final[float] = 0.05
DEFAULT_STOP_TIMEOUT: Final[float] = 2.0
KILL_WAIT_TIMEOUT: Final[float] = 1.0

# Connectivity probe
DEFAULT_PROBE_URL: Final[str] = "http://www.gstatic.com/generate_204"
DEFAULT_PROBE_TIMEOUT: Final[float] = 5.0
PROBE_SUCCESS_CODES: Final[frozenset[int]] = frozenset({200, 204})

# Native messaging framing
FRAME_HEADER_SIZE: Final[int] = 4
DEFAULT_MAX_MESSAGE_BYTES: Final[int] = 64 * 1024 * 1024

# Reply texts
ERROR_CONFIG_MISSING: Final[str] = "Config is missing"
ERROR_UNKNOWN_COMMAND: Final[str] = "unknown_command"
ERROR_MALFORMED_MESSAGE: Final[str] = "malformed_message"
PONG_DATA: Final[str] = "pong"
