"""Invite workflow: from INVITE through the NAMES privilege check to accept/reject.

A pending invite is created when an acceptable INVITE arrives and the bot
sends JOIN. Once the server confirms the join, a NAMES query is sent; the
owner/admin/op nicks from the reply are collected and, at end-of-names, the
invite is accepted only if the inviter is among them. Rejections are
remembered in the cooldown cache so the same inviter cannot retrigger the
join/part cycle for the same channel straight away.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import TYPE_CHECKING

from ..chat.publisher import EventKind
from ..config.model import InviteAnnotation
from ..constants import DEFAULT_PART_REASON, PENDING_INVITE_TIMEOUT
from ..errors import CacheError, log_error
from ..logs.logger import logger
from .models import PendingInvite
from .parser import IRCMessage, canonical_channel, is_channel, privileged_nicks

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot


@lru_cache(maxsize=256)
def _mask_regex(mask: str) -> re.Pattern[str]:
    parts = []
    for char in mask:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def mask_matches(mask: str, identity: str) -> bool:
    """IRC user-mask match: ``*`` is zero or more chars, ``?`` exactly one."""
    return _mask_regex(mask).fullmatch(identity) is not None


def is_blocked(entries: list[str], channel: str, identity: str) -> bool:
    for entry in entries:
        if is_channel(entry):
            if canonical_channel(entry) == channel:
                return True
        elif mask_matches(entry, identity):
            return True
    return False


def has_valid_shape(raw_channel: str) -> bool:
    """Reject names that start with ``_`` or a second ``#`` after the first."""
    name = raw_channel.strip()
    if name.startswith("#"):
        name = name[1:]
    return bool(name) and not name.startswith(("_", "#"))


class InviteWorkflow:
    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    def cooldown_key(self, channel: str, inviter_source: str) -> str:
        return f"invite:{self.bot.config.network}:{channel}:{inviter_source.lower()}"

    def is_pending(self, channel: str) -> bool:
        return canonical_channel(channel) in self.bot.session.pending_invites

    def is_awaiting_names(self, channel: str) -> bool:
        pending = self.bot.session.pending_invites.get(canonical_channel(channel))
        return pending is not None and pending.awaiting_names

    async def on_invite(self, message: IRCMessage) -> None:
        config = self.bot.config
        session = self.bot.session
        raw_channel = message.param(1)
        source = message.prefix or ""
        inviter = message.nick

        if not has_valid_shape(raw_channel):
            logger.log_event(
                "invite", "malformed", level=logging.WARNING,
                network=config.network, inviter=source, raw_channel=raw_channel,
            )
            return
        channel = canonical_channel(raw_channel)
        if is_blocked(config.blocked, channel, source):
            logger.log_event(
                "invite", "blocked", level=logging.WARNING,
                network=config.network, channel=channel, inviter=source,
            )
            return
        if channel in session.joined_channels:
            logger.log_event(
                "invite", "already_joined", level=logging.DEBUG,
                network=config.network, channel=channel, inviter=source,
            )
            return

        key = self.cooldown_key(channel, source)
        now = self.bot.wall_clock()
        last_rejected = await self._cache_get(key)
        if last_rejected is not None and now - float(last_rejected) < config.invite_cooldown:
            logger.log_event(
                "invite", "cooldown", level=logging.INFO,
                network=config.network, channel=channel, inviter=source,
            )
            await self.bot.send(
                f"NOTICE {inviter} :Please wait longer before inviting me to {channel} again."
            )
            return

        previous = session.pending_invites.get(channel)
        if previous is not None:
            logger.log_event(
                "invite", "superseded", level=logging.DEBUG, network=config.network,
                channel=channel, inviter=source, previous=previous.inviter_source,
            )
        session.pending_invites[channel] = PendingInvite(
            channel=channel,
            inviter_source=source,
            inviter_nick=inviter,
            cooldown_key=key,
            created_at=now,
        )
        logger.log_event(
            "invite", "received", network=config.network, channel=channel, inviter=source,
        )
        settings = config.channel(channel)
        if settings and settings.password:
            await self.bot.send(f"JOIN {channel} {settings.password}")
        else:
            await self.bot.send(f"JOIN {channel}")

    async def on_joined(self, channel: str) -> None:
        """Join confirmed for a pending channel: ask who holds privileges."""
        pending = self.bot.session.pending_invites[channel]
        pending.awaiting_names = True
        await self.bot.send(f"NAMES {channel}")

    def on_names(self, channel: str, names: str) -> None:
        pending = self.bot.session.pending_invites.get(channel)
        if pending is None:
            return
        for nick in privileged_nicks(names):
            if nick not in pending.observed_privileged_nicks:
                pending.observed_privileged_nicks.append(nick)

    async def on_end_of_names(self, channel: str) -> None:
        pending = self.bot.session.pending_invites.pop(channel, None)
        if pending is None:
            return
        privileged = {nick.lower() for nick in pending.observed_privileged_nicks}
        if pending.inviter_nick.lower() in privileged:
            await self._accept(pending)
        else:
            await self._reject(pending)

    async def on_join_failed(self, channel: str, reason: str) -> None:
        pending = self.bot.session.pending_invites.pop(channel, None)
        if pending is None:
            return
        await self.bot.send(
            f"NOTICE {pending.inviter_nick} :I could not join {channel}: {reason}"
        )

    def discard(self, channel: str) -> None:
        self.bot.session.pending_invites.pop(channel, None)

    def expire_stale(self, now: float) -> list[str]:
        """Drop pending invites that did not resolve within the timeout."""
        pending = self.bot.session.pending_invites
        stale = sorted(
            channel
            for channel, invite in pending.items()
            if now - invite.created_at >= PENDING_INVITE_TIMEOUT
        )
        for channel in stale:
            invite = pending.pop(channel)
            logger.log_event(
                "invite", "expired", level=logging.WARNING, network=self.bot.config.network,
                channel=channel, inviter=invite.inviter_source,
            )
        return stale

    async def _accept(self, pending: PendingInvite) -> None:
        config = self.bot.config
        session = self.bot.session
        channel = pending.channel
        await self.bot.update_channel(
            channel,
            create=True,
            invite=InviteAnnotation(timestamp=self.bot.wall_clock(), by=pending.inviter_source),
            disabled=False,
            archived=False,
        )
        session.joined_channels.add(channel)
        logger.log_event(
            "invite", "accepted", network=config.network, channel=channel,
            inviter=pending.inviter_source,
        )
        await self.bot.send(f"MODE {channel}")
        announcement = self.announcement(channel)
        await self.bot.send(f"PRIVMSG {channel} :{announcement}")
        await self.bot.publisher.publish(channel, EventKind.MESSAGE, session.nick, announcement)

    async def _reject(self, pending: PendingInvite) -> None:
        config = self.bot.config
        channel = pending.channel
        self.bot.session.joined_channels.discard(channel)
        logger.log_event(
            "invite", "rejected", level=logging.WARNING, network=config.network,
            channel=channel, inviter=pending.inviter_source,
        )
        await self.bot.send(f"PART {channel} :{DEFAULT_PART_REASON}")
        await self.bot.send(
            f"NOTICE {pending.inviter_nick} :You need to be a channel operator in "
            f"{channel} to invite me."
        )
        try:
            await self.bot.cache.set(
                pending.cooldown_key, self.bot.wall_clock(), ttl=config.invite_cooldown
            )
        except CacheError as e:
            log_error("Could not record invite cooldown", e, context={"channel": channel})

    def announcement(self, channel: str) -> str:
        config = self.bot.config
        if not config.log_url:
            return "This channel is now being logged."
        try:
            url = config.log_url.format(
                network=config.network, channel=channel, channel_name=channel.lstrip("#")
            )
        except (KeyError, IndexError, ValueError):
            url = config.log_url
        return f"This channel is now being logged: {url}"

    async def _cache_get(self, key: str) -> float | None:
        try:
            return await self.bot.cache.get(key)
        except CacheError as e:
            log_error("Could not read invite cooldown", e, context={"key": key})
            return None
