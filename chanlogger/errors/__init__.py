"""Error hierarchy and logging helpers."""

from .handling import classify_error, log_error  # noqa: F401
from .internal import (  # noqa: F401
    CacheError,
    ConfigError,
    InternalError,
    LoginError,
    PublishError,
    TransportError,
)

__all__ = [
    "CacheError",
    "ConfigError",
    "InternalError",
    "LoginError",
    "PublishError",
    "TransportError",
    "classify_error",
    "log_error",
]
