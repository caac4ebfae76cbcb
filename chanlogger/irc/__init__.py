"""IRC subsystem package.

Contains the transport, connection, parsing, timer, dispatcher, invite,
membership and health modules. Only the dependency-free parsing helpers and
session models are re-exported here so that configuration code can import
the channel helpers without pulling in the rest of the subsystem.
"""

from .models import ConnectionState, PendingInvite, SessionState, TimerDeadlines  # noqa: F401
from .parser import IRCMessage, canonical_channel, parse_irc_message  # noqa: F401

__all__ = [
    "ConnectionState",
    "IRCMessage",
    "PendingInvite",
    "SessionState",
    "TimerDeadlines",
    "canonical_channel",
    "parse_irc_message",
]
