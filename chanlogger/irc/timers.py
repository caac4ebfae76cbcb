"""Keepalive, topic-refresh and reconciliation deadlines."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..constants import TOPIC_REQUEST_SPACING
from ..logs.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot


def _due(deadline: float | None, now: float) -> bool:
    return deadline is not None and now >= deadline


class TimerScheduler:
    """Checks the session deadlines once per loop iteration.

    Firing order within a tick is fixed: ping, pong timeout, topic reload,
    queued topic request, channel reload.
    """

    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    def reset(self, now: float) -> None:
        config = self.bot.config
        session = self.bot.session
        timers = session.timers
        timers.next_ping = now + config.initial_ping_delay
        timers.pong_timeout = None
        timers.next_topic_reload = now + config.topic_reload_interval
        timers.next_topic_request = None
        timers.next_channel_reload = now
        session.topic_queue.clear()
        session.ping_timeouts = 0

    async def tick(self, now: float) -> None:
        timers = self.bot.session.timers
        if _due(timers.next_ping, now):
            await self._send_ping(now)
        if _due(timers.pong_timeout, now):
            await self._pong_timed_out(now)
        if _due(timers.next_topic_reload, now):
            self._queue_topic_reload(now)
        if self.bot.session.topic_queue and (
            timers.next_topic_request is None or now >= timers.next_topic_request
        ):
            await self._send_topic_request(now)
        if _due(timers.next_channel_reload, now):
            timers.next_channel_reload = None
            await self.bot.membership.begin()

    async def _send_ping(self, now: float) -> None:
        session = self.bot.session
        session.timers.next_ping = None
        session.timers.pong_timeout = now + self.bot.config.ping_timeout
        await self.bot.send(f"PING {session.server_name}")

    async def _pong_timed_out(self, now: float) -> None:
        config = self.bot.config
        session = self.bot.session
        session.timers.pong_timeout = None
        session.ping_timeouts += 1
        logger.log_event(
            "irc",
            "ping_timeout",
            level=logging.WARNING,
            network=config.network,
            attempt=session.ping_timeouts,
            limit=config.ping_timeout_attempts,
        )
        session.timers.next_ping = now
        if session.ping_timeouts >= config.ping_timeout_attempts:
            session.ping_timeouts = 0
            await self.bot.connection.drop("keepalive timeout")

    def _queue_topic_reload(self, now: float) -> None:
        session = self.bot.session
        if session.joined_channels:
            session.topic_queue = sorted(session.joined_channels)
            session.timers.next_topic_request = now
            logger.log_event(
                "irc",
                "topic_reload",
                level=logging.DEBUG,
                network=self.bot.config.network,
                count=len(session.topic_queue),
            )
        session.timers.next_topic_reload = now + self.bot.config.topic_reload_interval

    async def _send_topic_request(self, now: float) -> None:
        session = self.bot.session
        channel = session.topic_queue.pop(0)
        session.timers.next_topic_request = now + TOPIC_REQUEST_SPACING
        if channel in session.joined_channels:
            await self.bot.send(f"TOPIC {channel}")

    def on_pong(self, now: float) -> None:
        session = self.bot.session
        session.timers.pong_timeout = None
        session.ping_timeouts = 0
        session.timers.next_ping = now + self.bot.config.ping_interval
        self.bot.health.touch_liveness()
