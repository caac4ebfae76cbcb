"""Membership reconciliation against the server-reported channel list."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from ..constants import JOIN_BATCH_SIZE
from ..logs.logger import logger
from .parser import IRCMessage, canonical_channel, strip_membership_prefix

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot


def batched(channels: Iterable[str], size: int = JOIN_BATCH_SIZE) -> Iterator[list[str]]:
    batch: list[str] = []
    for channel in channels:
        batch.append(channel)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def parse_whois_channels(listing: str) -> set[str]:
    """Channels from a 319 reply, with ``@``/``+``-style prefixes removed."""
    channels = set()
    for token in listing.split():
        _, name = strip_membership_prefix(token)
        if name.strip("#"):
            channels.add(canonical_channel(name))
    return channels


class MembershipReconciler:
    """Brings the joined channel set in line with the configuration.

    A cycle is two phases around a server round trip: ``begin`` sends WHOIS
    for the bot's own nick, 319 replies are collected, and 318 runs the diff.
    """

    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    @property
    def in_progress(self) -> bool:
        return self.bot.session.reconciliation is not None

    async def begin(self) -> None:
        session = self.bot.session
        session.reconciliation = set()
        logger.log_event(
            "membership", "cycle_start", level=logging.DEBUG, network=self.bot.config.network
        )
        await self.bot.send(f"WHOIS {session.nick}")

    def on_whois_channels(self, message: IRCMessage) -> None:
        session = self.bot.session
        if session.reconciliation is None:
            return
        if not session.is_self(message.param(1)):
            return
        session.reconciliation.update(parse_whois_channels(message.trailing))

    async def finish(self) -> None:
        session = self.bot.session
        reported = session.reconciliation
        if reported is None:
            return
        session.reconciliation = None
        config = self.bot.reload_config()
        network = config.network

        missing = [c for c in config.wanted_channels() if c not in reported]
        keyed = [c for c in missing if config.channels[c].password]
        unkeyed = [c for c in missing if not config.channels[c].password]
        for channel in keyed:
            await self.bot.send(f"JOIN {channel} {config.channels[channel].password}")
        for batch in batched(unkeyed):
            await self.bot.send(f"JOIN {','.join(batch)}")

        self.bot.invites.expire_stale(self.bot.wall_clock())
        unknown = sorted(
            c
            for c in reported
            if config.channel(c) is None and c not in session.pending_invites
        )
        for batch in batched(unknown):
            await self.bot.send(f"PART {','.join(batch)}")

        for channel in sorted(session.joined_channels - reported):
            session.joined_channels.discard(channel)
            logger.log_event(
                "membership", "not_joined", level=logging.WARNING,
                network=network, channel=channel,
            )
        session.joined_channels.update(reported.difference(unknown))

        session.timers.next_channel_reload = self.bot.clock() + config.channel_reload_interval
        logger.log_event(
            "membership",
            "cycle_complete",
            level=logging.DEBUG,
            network=network,
            reported=len(reported),
            joining=len(missing),
            parting=len(unknown),
        )
