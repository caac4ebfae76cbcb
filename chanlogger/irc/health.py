"""Liveness file and debug-dump snapshot."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..logging_config import error_aggregator
from ..logs.logger import logger

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot


class HealthMonitor:
    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    def touch_liveness(self) -> None:
        """Refresh the mtime external monitoring watches."""
        path = self.bot.config.liveness_file
        if not path:
            return
        try:
            Path(path).touch()
        except OSError as e:
            logger.log_event(
                "health",
                "liveness_error",
                level=logging.WARNING,
                network=self.bot.config.network,
                path=path,
                error=str(e),
            )

    def get_snapshot(self) -> dict[str, Any]:
        session = self.bot.session
        now = self.bot.clock()

        def _in(deadline: float | None) -> float | None:
            return round(deadline - now, 1) if deadline is not None else None

        timers = session.timers
        return {
            "network": self.bot.config.network,
            "state": session.state.name,
            "connected": session.connected,
            "server": session.server_name,
            "nick": session.nick,
            "uptime": (
                round(time.time() - session.connected_since)
                if session.connected_since
                else None
            ),
            "backoff_seconds": session.backoff_seconds,
            "joined_channels": sorted(session.joined_channels),
            "pending_invites": {
                channel: {
                    "inviter": pending.inviter_source,
                    "awaiting_names": pending.awaiting_names,
                    "privileged": list(pending.observed_privileged_nicks),
                }
                for channel, pending in session.pending_invites.items()
            },
            "reconciliation_in_progress": session.reconciliation is not None,
            "ping_timeouts": session.ping_timeouts,
            "topic_queue": list(session.topic_queue),
            "lines_received": session.lines_received,
            "timers": {
                "next_ping": _in(timers.next_ping),
                "pong_timeout": _in(timers.pong_timeout),
                "next_topic_reload": _in(timers.next_topic_reload),
                "next_channel_reload": _in(timers.next_channel_reload),
            },
        }

    def dump(self) -> dict[str, Any]:
        snapshot = self.get_snapshot()
        logger.log_event(
            "health",
            "debug_dump",
            level=logging.WARNING,
            network=self.bot.config.network,
            human=f"Debug dump: {snapshot}",
        )
        error_aggregator.log_summary_report()
        return snapshot
