from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from chanlogger.bot.core import ChannelLoggerBot
from chanlogger.bot.signal_handler import SignalHandler
from chanlogger.chat.cache_manager import MemoryCache
from chanlogger.config.repository import ConfigRepository
from chanlogger.irc.models import ConnectionState
from chanlogger.irc.transport import DISCONNECTED, IDLE, ReadResult, ReadStatus

SERVER = "irc.example.net"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTransport:
    """Scripted transport: returns queued lines, then IDLE (or DISCONNECTED)."""

    def __init__(self, lines: list[str] | None = None, *, tls: bool = False) -> None:
        self.lines = list(lines or [])
        self.sent: list[str] = []
        self.closed = False
        self.disconnect_when_empty = False
        self.tls = tls

    async def read_line(self, timeout: float) -> ReadResult:
        if self.lines:
            return ReadResult(ReadStatus.LINE, self.lines.pop(0))
        return DISCONNECTED if self.disconnect_when_empty else IDLE

    async def write_line(self, line: str) -> None:
        self.sent.append(line)

    async def close(self) -> None:
        self.closed = True


class FakeQueue:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []
        self.closed = False
        self.fail = False

    async def publish(self, event: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("queue down")
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True


def base_config(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "network": "example",
        "host": SERVER,
        "port": 6667,
        "nick": "logbot",
        "log_url": "https://logs.example.net/{network}/{channel_name}",
        "channels": {},
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wall_clock() -> FakeClock:
    return FakeClock(1_700_000_000.0)


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[..., Path]:
    def _write(**overrides: Any) -> Path:
        path = tmp_path / "network.json"
        path.write_text(json.dumps(base_config(**overrides)), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_bot(
    write_config: Callable[..., Path],
    clock: FakeClock,
    wall_clock: FakeClock,
    queue: FakeQueue,
) -> Callable[..., ChannelLoggerBot]:
    """Build a bot over a temp config file with fake collaborators."""

    def _make(**overrides: Any) -> ChannelLoggerBot:
        path = write_config(**overrides)
        repository = ConfigRepository(path)
        return ChannelLoggerBot(
            repository,
            repository.load(),
            cache=MemoryCache(wall_clock),
            job_queue=queue,
            signals=SignalHandler(),
            clock=clock,
            wall_clock=wall_clock,
        )

    return _make


def _attach(bot: ChannelLoggerBot, *lines: str) -> FakeTransport:
    transport = FakeTransport(list(lines))
    bot.session.transport = transport
    bot.session.state = ConnectionState.READY
    bot.session.server_name = SERVER
    return transport


@pytest.fixture
def attach() -> Callable[..., FakeTransport]:
    """Put a bot straight into the ready state on a scripted fake transport."""
    return _attach


@pytest.fixture
def stored_config() -> Callable[[ChannelLoggerBot], dict[str, Any]]:
    def _read(bot: ChannelLoggerBot) -> dict[str, Any]:
        return json.loads(Path(bot.repository.path).read_text(encoding="utf-8"))

    return _read


@pytest.fixture
def fake_transport() -> type[FakeTransport]:
    return FakeTransport
