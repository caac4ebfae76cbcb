"""Chat event construction and forwarding."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

from ..constants import SERVER_SOURCE
from ..errors import log_error
from ..logs.logger import logger
from .sanitize import sanitize

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot


class EventKind(IntEnum):
    MESSAGE = 0
    ACTION = 1
    NOTICE = 2
    TOPIC = 3


SERVER_NICK = SERVER_SOURCE


@dataclass(slots=True)
class ChatEvent:
    timestamp: float
    network: str
    channel: str
    event_kind: int
    nick: str
    text: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class EventPublisher:
    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    def should_publish(self, channel: str) -> bool:
        settings = self.bot.config.channel(channel)
        return settings is not None and not settings.no_logs

    async def publish(
        self,
        channel: str,
        kind: EventKind,
        nick: str,
        text: str | bytes,
        timestamp: float | None = None,
    ) -> bool:
        """Sanitize and forward one chat event.

        Returns:
            True if the event reached the queue. Suppressed events and failures
            return False; failures are logged and never raised.
        """
        if not self.should_publish(channel):
            logger.log_event(
                "chat",
                "suppressed",
                level=logging.DEBUG,
                network=self.bot.config.network,
                channel=channel,
            )
            return False
        queue = self.bot.job_queue
        if queue is None:
            return False
        try:
            event = ChatEvent(
                timestamp=timestamp if timestamp is not None else self.bot.wall_clock(),
                network=self.bot.config.network,
                channel=channel,
                event_kind=int(kind),
                nick=sanitize(nick) if nick else SERVER_NICK,
                text=sanitize(text),
            )
            await queue.publish(event.to_dict())
        except Exception as e:  # noqa: BLE001
            log_error(
                "Chat event dropped",
                e,
                context={"channel": channel, "kind": int(kind)},
            )
            return False
        logger.log_event(
            "chat",
            "published",
            level=logging.DEBUG,
            network=self.bot.config.network,
            channel=channel,
            kind=kind.name.lower(),
            nick=event.nick,
        )
        return True
