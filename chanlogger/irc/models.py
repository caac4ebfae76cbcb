"""Shared IRC session models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .transport import LineTransport


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    AUTHENTICATING = auto()
    READY = auto()


@dataclass(slots=True)
class PendingInvite:
    channel: str
    inviter_source: str
    inviter_nick: str
    cooldown_key: str
    created_at: float
    observed_privileged_nicks: list[str] = field(default_factory=list)
    awaiting_names: bool = False


@dataclass(slots=True)
class TimerDeadlines:
    """Absolute monotonic deadlines; ``None`` means disarmed."""

    next_ping: float | None = None
    pong_timeout: float | None = None
    next_topic_reload: float | None = None
    next_topic_request: float | None = None
    next_channel_reload: float | None = None


@dataclass
class SessionState:
    """Everything the event loop knows about the current session.

    One instance lives for the whole process and is handed to every component.
    """

    nick: str
    state: ConnectionState = ConnectionState.DISCONNECTED
    transport: LineTransport | None = None
    server_name: str = ""
    backoff_seconds: int | None = None
    joined_channels: set[str] = field(default_factory=set)
    pending_invites: dict[str, PendingInvite] = field(default_factory=dict)
    reconciliation: set[str] | None = None
    timers: TimerDeadlines = field(default_factory=TimerDeadlines)
    ping_timeouts: int = 0
    topic_queue: list[str] = field(default_factory=list)
    connected_since: float | None = None
    lines_received: int = 0

    @property
    def connected(self) -> bool:
        return self.transport is not None and self.state is ConnectionState.READY

    def is_self(self, nick: str) -> bool:
        return nick.lower() == self.nick.lower()

    def reset_connection_state(self) -> None:
        """Forget everything learned from the previous connection."""
        self.joined_channels.clear()
        self.pending_invites.clear()
        self.reconciliation = None
        self.topic_queue.clear()
        self.ping_timeouts = 0
        self.lines_received = 0
        self.timers = TimerDeadlines()
