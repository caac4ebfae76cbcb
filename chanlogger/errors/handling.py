from __future__ import annotations

import asyncio

from ..logging_config import log_structured_error
from .internal import (
    CacheError,
    ConfigError,
    InternalError,
    LoginError,
    PublishError,
    TransportError,
)


def classify_error(error: BaseException) -> str:
    """Return the aggregation category for an exception."""
    if isinstance(error, TransportError | OSError | ConnectionError | asyncio.TimeoutError):
        return "transport"
    if isinstance(error, LoginError):
        return "login"
    if isinstance(error, PublishError):
        return "publish"
    if isinstance(error, CacheError):
        return "cache"
    if isinstance(error, ConfigError):
        return "config"
    if isinstance(error, InternalError):
        return "internal"
    return "unknown"


def log_error(message: str, error: Exception, context: dict = None) -> None:
    """Logs an error message with the associated exception details.

    Args:
        message: A descriptive message about the error context.
        error: The exception instance to be logged.
        context: Optional additional context data for debugging.
    """
    merged = dict(context or {})
    if isinstance(error, InternalError) and error.data:
        for key, value in error.data.items():
            merged.setdefault(key, value)
    log_structured_error(
        error_type=classify_error(error),
        message=f"{message}: {str(error)}",
        exception=error,
        context=merged or None,
    )
