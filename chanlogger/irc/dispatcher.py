"""Routing of incoming protocol lines to their handlers."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..chat.publisher import SERVER_NICK, EventKind
from ..config.model import ErrorAnnotation, KickAnnotation
from ..constants import DEFAULT_KICK_REASON, DEFAULT_PART_REASON
from ..errors import log_error
from ..logs.logger import logger
from .parser import IRCMessage, canonical_channel, ctcp_action, is_channel, parse_irc_message

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot

JOIN_FAILURES = ("403", "405", "461", "473", "474", "475")
BANNED = "474"
CANNOT_SEND = "404"
NOT_A_CHANNEL_REPLY = "461"  # names a command, not a channel
# Channel modes that carry an argument in a 324 reply
MODES_WITH_ARGS = "fjklL"

Predicate = Callable[[IRCMessage], bool]
Handler = Callable[[IRCMessage], Awaitable[None]]


def names_channel(message: IRCMessage) -> str:
    """Channel of a 353 reply; the visibility symbol before it is optional."""
    for param in message.params[1:-1]:
        if is_channel(param):
            return canonical_channel(param)
    return ""


def channel_key(modes: str, args: list[str]) -> str | None:
    """Find the ``+k`` argument in a 324 mode string."""
    index = 0
    for flag in modes.lstrip("+"):
        if flag not in MODES_WITH_ARGS:
            continue
        if index >= len(args):
            return None
        if flag == "k":
            return args[index]
        index += 1
    return None


class IRCDispatcher:
    """Routes each inbound line to the first matching handler."""

    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot
        self._routes: list[tuple[Predicate, Handler]] = [
            (self._command("PING"), self._handle_ping),
            (self._command("PONG"), self._handle_pong),
            (self._command("INVITE"), self._handle_invite),
            (self._self_command("JOIN"), self._handle_self_join),
            (self._self_command("PART"), self._handle_self_part),
            (self._is_pending_names, self._handle_names),
            (self._is_pending_end_of_names, self._handle_end_of_names),
            (self._command(*JOIN_FAILURES), self._handle_join_failure),
            (self._command(CANNOT_SEND), self._handle_cannot_send),
            (self._command("324"), self._handle_channel_modes),
            (self._is_self_kick, self._handle_self_kick),
            (self._is_channel_text, self._handle_channel_text),
            (self._command("TOPIC", "332", "331"), self._handle_topic),
            (self._is_private_message, self._handle_private_message),
            (self._is_reconciling("319"), self._handle_whois_channels),
            (self._is_reconciling("318"), self._handle_end_of_whois),
        ]

    async def dispatch(self, line: str) -> None:
        session = self.bot.session
        session.lines_received += 1
        message = parse_irc_message(line)
        if not message.command:
            return
        for matches, handler in self._routes:
            if not matches(message):
                continue
            try:
                await handler(message)
            except Exception as e:  # noqa: BLE001
                log_error(
                    "Handler failed",
                    e,
                    context={"command": message.command, "line": line},
                )
            return

    # --- matchers -------------------------------------------------------

    @staticmethod
    def _command(*commands: str) -> Predicate:
        return lambda message: message.command in commands

    def _self_command(self, command: str) -> Predicate:
        return lambda message: (
            message.command == command and self.bot.session.is_self(message.nick)
        )

    def _is_reconciling(self, command: str) -> Predicate:
        return lambda message: (
            message.command == command and self.bot.membership.in_progress
        )

    def _is_pending_names(self, message: IRCMessage) -> bool:
        return message.command == "353" and self.bot.invites.is_awaiting_names(
            names_channel(message)
        )

    def _is_pending_end_of_names(self, message: IRCMessage) -> bool:
        return message.command == "366" and self.bot.invites.is_awaiting_names(
            message.param(1)
        )

    def _is_self_kick(self, message: IRCMessage) -> bool:
        return message.command == "KICK" and self.bot.session.is_self(message.param(1))

    @staticmethod
    def _is_channel_text(message: IRCMessage) -> bool:
        return message.command in ("PRIVMSG", "NOTICE") and is_channel(message.param(0))

    def _is_private_message(self, message: IRCMessage) -> bool:
        return message.command == "PRIVMSG" and self.bot.session.is_self(message.param(0))

    # --- handlers -------------------------------------------------------

    async def _handle_ping(self, message: IRCMessage) -> None:
        await self.bot.send(f"PONG :{message.trailing}")

    async def _handle_pong(self, message: IRCMessage) -> None:
        self.bot.timers.on_pong(self.bot.clock())

    async def _handle_invite(self, message: IRCMessage) -> None:
        await self.bot.invites.on_invite(message)

    async def _handle_self_join(self, message: IRCMessage) -> None:
        channel = canonical_channel(message.param(0))
        self.bot.session.joined_channels.add(channel)
        logger.log_event(
            "irc", "joined", level=logging.DEBUG, network=self.bot.config.network,
            channel=channel,
        )
        if self.bot.invites.is_pending(channel):
            await self.bot.invites.on_joined(channel)
        else:
            await self.bot.send(f"MODE {channel}")

    async def _handle_self_part(self, message: IRCMessage) -> None:
        channel = canonical_channel(message.param(0))
        self.bot.session.joined_channels.discard(channel)
        self.bot.invites.discard(channel)
        logger.log_event(
            "irc", "parted", level=logging.DEBUG, network=self.bot.config.network,
            channel=channel,
        )

    async def _handle_names(self, message: IRCMessage) -> None:
        self.bot.invites.on_names(names_channel(message), message.trailing)

    async def _handle_end_of_names(self, message: IRCMessage) -> None:
        await self.bot.invites.on_end_of_names(canonical_channel(message.param(1)))

    async def _handle_join_failure(self, message: IRCMessage) -> None:
        network = self.bot.config.network
        if message.command == NOT_A_CHANNEL_REPLY:
            logger.log_event(
                "irc", "need_more_params", level=logging.WARNING, network=network,
                target=message.param(1), reason=message.trailing,
            )
            return
        await self._record_failure(message)
        await self.bot.invites.on_join_failed(
            canonical_channel(message.param(1)), message.trailing
        )

    async def _handle_cannot_send(self, message: IRCMessage) -> None:
        channel = await self._record_failure(message, archive=True)
        await self.bot.invites.on_join_failed(channel, message.trailing)
        await self.bot.send(f"PART {channel} :{DEFAULT_PART_REASON}")

    async def _record_failure(self, message: IRCMessage, *, archive: bool = False) -> str:
        channel = canonical_channel(message.param(1))
        self.bot.session.joined_channels.discard(channel)
        logger.log_event(
            "irc", "join_failed", level=logging.WARNING, network=self.bot.config.network,
            channel=channel, code=message.command, reason=message.trailing,
        )
        changes: dict = {
            "error": ErrorAnnotation(
                timestamp=self.bot.wall_clock(),
                code=message.command or "",
                message=message.trailing,
            )
        }
        if archive or message.command == BANNED:
            changes["archived"] = True
        await self.bot.update_channel(channel, **changes)
        return channel

    async def _handle_channel_modes(self, message: IRCMessage) -> None:
        channel = canonical_channel(message.param(1))
        key = channel_key(message.param(2), message.params[3:])
        if not key or key == "*":
            return
        settings = self.bot.config.channel(channel)
        if settings is None or settings.password == key:
            return
        if await self.bot.update_channel(channel, password=key):
            logger.log_event(
                "irc", "key_learned", network=self.bot.config.network, channel=channel,
            )

    async def _handle_self_kick(self, message: IRCMessage) -> None:
        channel = canonical_channel(message.param(0))
        reason = message.param(2) or DEFAULT_KICK_REASON
        self.bot.session.joined_channels.discard(channel)
        self.bot.invites.discard(channel)
        logger.log_event(
            "irc", "kicked", level=logging.WARNING, network=self.bot.config.network,
            channel=channel, by=message.prefix, reason=reason,
        )
        await self.bot.update_channel(
            channel,
            disabled=True,
            kick=KickAnnotation(
                timestamp=self.bot.wall_clock(), by=message.prefix or "", reason=reason
            ),
        )

    async def _handle_channel_text(self, message: IRCMessage) -> None:
        channel = canonical_channel(message.param(0))
        text = message.trailing
        if message.command == "NOTICE":
            kind = EventKind.NOTICE
        else:
            action = ctcp_action(text)
            if action is not None:
                kind, text = EventKind.ACTION, action
            elif text.startswith("\x01"):
                return
            else:
                kind = EventKind.MESSAGE
        await self.bot.publisher.publish(channel, kind, message.nick, text)

    async def _handle_topic(self, message: IRCMessage) -> None:
        if message.command == "TOPIC":
            channel, nick, text = message.param(0), message.nick, message.param(1)
        elif message.command == "332":
            channel, nick, text = message.param(1), SERVER_NICK, message.param(2)
        else:
            channel, nick, text = message.param(1), SERVER_NICK, ""
        await self.bot.publisher.publish(canonical_channel(channel), EventKind.TOPIC, nick, text)

    async def _handle_private_message(self, message: IRCMessage) -> None:
        help_response = self.bot.config.help_response
        if not help_response or message.trailing.startswith("\x01"):
            return
        for line in help_response.splitlines():
            if line.strip():
                await self.bot.send(f"NOTICE {message.nick} :{line}")

    async def _handle_whois_channels(self, message: IRCMessage) -> None:
        self.bot.membership.on_whois_channels(message)

    async def _handle_end_of_whois(self, message: IRCMessage) -> None:
        await self.bot.membership.finish()
