"""Centralized internal error hierarchy.

These exceptions provide semantic categories for the reconnect loop and for
the log-and-continue call sites. Raw ``OSError`` / ``asyncio.TimeoutError`` /
pydantic errors are wrapped at the boundary that first sees them.

Classes:
  InternalError   – Base for all internal errors.
  TransportError  – Connect failure, disconnect during login, login timeout
                    (retried with backoff).
  LoginError      – The server refused the login outright (nickname in use);
                    fatal.
  ConfigError     – Configuration file unreadable or invalid.
  CacheError      – Cooldown cache file could not be read or written.
  PublishError    – A chat event could not be delivered to the job queue.
"""

from __future__ import annotations

from collections.abc import Mapping


class InternalError(Exception):
    """Base class for all internal application errors with metadata support.

    Attributes:
        data: Dictionary containing arbitrary structured context data.
    """

    data: dict[str, object]
    transient: bool = False

    def __init__(
        self, message: str, *, data: Mapping[str, object] | None = None
    ) -> None:
        super().__init__(message)
        # Copy into a plain dict to avoid unexpected mutations from caller.
        self.data = dict(data) if data else {}


class TransportError(InternalError):
    """Connection could not be established or was lost before readiness."""

    transient = True


class LoginError(InternalError):
    """The server rejected the login in a way retrying cannot fix."""


class ConfigError(InternalError):
    """Configuration could not be loaded or failed validation."""


class CacheError(InternalError):
    """Cache storage failure.

    Args:
        message: Error message.
        operation_type: Optional operation label (``load_cache`` / ``save_cache``).
    """

    def __init__(self, message: str, operation_type: str | None = None) -> None:
        super().__init__(message, data={"operation_type": operation_type})
        self.operation_type = operation_type


class PublishError(InternalError):
    """A chat event could not be handed to the job queue."""

    transient = True


__all__ = [
    "InternalError",
    "TransportError",
    "LoginError",
    "ConfigError",
    "CacheError",
    "PublishError",
]
