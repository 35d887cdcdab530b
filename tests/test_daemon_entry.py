"""Tests for the host entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from homabridge import daemon
from homabridge.config.settings import RuntimeConfig
from homabridge.const import INSTALL_DIR_ENV
from homabridge.errors import ChannelError
from homabridge.protocol.channel import NativeChannel
from homabridge.protocol.messages import Message

from tests.mocks import RecordingWriter, frames, make_reader


def _closing_run(exc: BaseException | None = None) -> Any:
    def fake_run(coro: Any, **_: Any) -> None:
        coro.close()
        if exc is not None:
            raise exc

    return fake_run


@pytest.mark.asyncio
async def test_run_host_serves_until_eof(runtime_config: RuntimeConfig) -> None:
    writer = RecordingWriter()
    channel = NativeChannel(make_reader(frames(Message(cmd="PING", id="1"))), writer)

    await daemon.run_host(runtime_config, channel)

    assert writer.messages() == [Message(cmd="PING", id="1", status="pong", data="pong")]
    assert writer.closed


@pytest.mark.asyncio
async def test_run_host_opens_stdio_when_no_channel(runtime_config: RuntimeConfig) -> None:
    channel = NativeChannel(make_reader(), RecordingWriter())
    opener = AsyncMock(return_value=channel)

    with patch.object(NativeChannel, "open_stdio", opener):
        await daemon.run_host(runtime_config)

    opener.assert_awaited_once_with(max_message_bytes=runtime_config.max_message_bytes)


@pytest.mark.parametrize(
    ("raised", "expected_code"),
    [
        (None, 0),
        (KeyboardInterrupt(), 0),
        (ChannelError("Write failed: broken pipe"), 1),
        (OSError("pipe transport"), 1),
        (RuntimeError("unexpected"), 1),
    ],
)
def test_main_exit_codes(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    raised: BaseException | None,
    expected_code: int,
) -> None:
    monkeypatch.setenv(INSTALL_DIR_ENV, str(tmp_path))

    with (
        patch("homabridge.daemon.configure_logging") as configure,
        patch("homabridge.daemon.asyncio.run", side_effect=_closing_run(raised)) as run,
    ):
        with pytest.raises(SystemExit) as excinfo:
            daemon.main(["chrome-extension://abcdefghijklmnop/"])

    assert excinfo.value.code == expected_code
    configure.assert_called_once()
    assert run.call_args.kwargs["loop_factory"] is daemon.uvloop.new_event_loop


def test_main_rejects_invalid_configuration(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "host.toml").write_text("[host]\nsettle_delay = -1\n", encoding="utf-8")
    monkeypatch.setenv(INSTALL_DIR_ENV, str(tmp_path))

    with patch("homabridge.daemon.asyncio.run") as run:
        with pytest.raises(SystemExit) as excinfo:
            daemon.main([])

    assert excinfo.value.code == 1
    run.assert_not_called()
