"""Bot host package (event loop, signals, process control)."""

from .core import ChannelLoggerBot  # noqa: F401
from .signal_handler import SignalHandler  # noqa: F401

__all__ = ["ChannelLoggerBot", "SignalHandler"]
