"""Configuration package exports."""

from .model import (  # noqa: F401
    BotConfig,
    ChannelConfig,
    ErrorAnnotation,
    InviteAnnotation,
    KickAnnotation,
)
from .repository import ConfigRepository  # noqa: F401

__all__ = [
    "BotConfig",
    "ChannelConfig",
    "ConfigRepository",
    "ErrorAnnotation",
    "InviteAnnotation",
    "KickAnnotation",
]
