"""Core ChannelLoggerBot: owns the collaborators and runs the event loop."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from ..chat.cache_manager import MemoryCache
from ..chat.protocols import CacheProtocol, JobQueueProtocol
from ..chat.publisher import EventPublisher
from ..config.model import BotConfig, ChannelConfig
from ..config.repository import ConfigRepository
from ..constants import NICKSERV, READ_POLL_TIMEOUT
from ..errors import log_error
from ..irc.connection import ConnectionController
from ..irc.dispatcher import IRCDispatcher
from ..irc.health import HealthMonitor
from ..irc.invite import InviteWorkflow
from ..irc.membership import MembershipReconciler
from ..irc.models import SessionState
from ..irc.parser import canonical_channel
from ..irc.timers import TimerScheduler
from ..irc.transport import LineTransport, ReadStatus
from ..logging_config import rotate_logs
from ..logs.logger import logger
from .signal_handler import SignalHandler

SECRET_COMMANDS = ("PASS ", f"PRIVMSG {NICKSERV} :IDENTIFY ")


def mask_secrets(line: str) -> str:
    for command in SECRET_COMMANDS:
        if line.startswith(command):
            return f"{command}********"
    return line


class ChannelLoggerBot:  # pylint: disable=too-many-instance-attributes
    """One network connection logging every configured channel.

    Attributes:
        repository: Configuration store, reloaded before every persisted change.
        config: Configuration currently in effect.
        session: Mutable per-process session state shared with all components.
        cache: Invite cooldown store.
        job_queue: Destination of chat events; ``None`` disables publishing.
        signals: One-shot control flags raised by process signals.
        clock: Monotonic time source for timers.
        wall_clock: Epoch time source for events and annotations.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        repository: ConfigRepository,
        config: BotConfig,
        *,
        cache: CacheProtocol | None = None,
        job_queue: JobQueueProtocol | None = None,
        signals: SignalHandler | None = None,
        transport_factory: Callable[..., Awaitable[LineTransport]] = LineTransport.open,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.repository = repository
        self.config = config
        self.session = SessionState(nick=config.nick)
        self.cache = cache if cache is not None else MemoryCache(wall_clock)
        self.job_queue = job_queue
        self.signals = signals or SignalHandler()
        self.transport_factory = transport_factory
        self.clock = clock
        self.wall_clock = wall_clock
        self.sleep = sleep

        self.connection = ConnectionController(self)
        self.timers = TimerScheduler(self)
        self.publisher = EventPublisher(self)
        self.invites = InviteWorkflow(self)
        self.membership = MembershipReconciler(self)
        self.dispatcher = IRCDispatcher(self)
        self.health = HealthMonitor(self)

    async def send(self, line: str) -> None:
        """Write one protocol line; a failed write drops the connection."""
        transport = self.session.transport
        if transport is None:
            logger.log_event(
                "irc", "send_skipped", level=logging.DEBUG, network=self.config.network,
                line=mask_secrets(line),
            )
            return
        logger.log_event(
            "irc", "send", level=logging.DEBUG, network=self.config.network,
            line=mask_secrets(line),
        )
        try:
            await transport.write_line(line)
        except OSError as e:
            log_error("Write failed", e, context={"network": self.config.network})
            await self.connection.drop("write failed")

    def reload_config(self) -> BotConfig:
        self.config = self.repository.reload(self.config)
        return self.config

    async def update_channel(self, channel: str, *, create: bool = False, **changes: Any) -> bool:
        """Persist learned facts about a channel.

        The configuration is reloaded first and written only when the channel
        entry actually changes. Channels missing from the configuration are
        left alone unless ``create`` is set.

        Returns:
            True if the configuration file was rewritten.
        """
        channel = canonical_channel(channel)
        config = self.reload_config()
        current = config.channels.get(channel)
        if current is None and not create:
            return False
        base = current if current is not None else ChannelConfig()
        updated = base.model_copy(update=changes)
        if current is not None and updated.model_dump() == current.model_dump():
            return False
        new_config = config.model_copy(update={"channels": {**config.channels, channel: updated}})
        try:
            written = self.repository.save(new_config)
        except (OSError, ValueError) as e:
            log_error("Could not persist channel update", e, context={"channel": channel})
            return False
        self.config = new_config
        logger.log_event(
            "config", "channel_updated", level=logging.DEBUG, network=config.network,
            channel=channel, fields=",".join(sorted(changes)),
        )
        return written

    async def step(self) -> bool:
        """Run one loop iteration. Returns False once the loop should stop."""
        await self._drain_signals()
        if self.signals.requested("quit"):
            return False
        if not await self.connection.ensure_connected():
            return False

        result = await self.session.transport.read_line(READ_POLL_TIMEOUT)
        if result.status is ReadStatus.DISCONNECTED:
            await self.connection.drop("connection closed by server")
            return True
        await self.timers.tick(self.clock())
        if result.status is ReadStatus.LINE and self.session.connected:
            await self.dispatcher.dispatch(result.line)
        return True

    async def _drain_signals(self) -> None:
        for flag in self.signals.drain():
            if flag == "reload":
                self.reload_config()
                logger.log_event("bot", "reload", network=self.config.network)
                if self.session.connected and not self.membership.in_progress:
                    self.session.timers.next_channel_reload = self.clock()
            elif flag == "debug_dump":
                self.health.dump()
            elif flag == "rotate_logs":
                rotated = rotate_logs()
                logger.log_event(
                    "bot", "rotate_logs", network=self.config.network, rotated=rotated
                )

    async def run(self) -> None:
        """Run until quit is requested.

        Raises:
            LoginError: The server refused the nickname.
        """
        logger.log_event("bot", "start", network=self.config.network, nick=self.config.nick)
        try:
            while await self.step():
                pass
            await self.quit()
        finally:
            await self.shutdown()

    async def quit(self) -> None:
        logger.log_event("bot", "quit", network=self.config.network)
        if self.session.transport is not None:
            await self.send(f"QUIT :{self.config.quit_message}")
            await self.connection.drop("quit requested")

    async def shutdown(self) -> None:
        if self.session.transport is not None:
            await self.connection.drop("shutdown")
        if self.job_queue is not None:
            try:
                await self.job_queue.close()
            except Exception as e:  # noqa: BLE001
                log_error("Job queue close failed", e)
        logger.log_event("bot", "stopped", network=self.config.network)
