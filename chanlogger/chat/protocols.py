"""Protocol definitions for the collaborators the bot talks to.

Concrete implementations live next to this module; tests substitute small
fakes that satisfy the same protocols.
"""

from __future__ import annotations

from typing import Any, Protocol


class CacheProtocol(Protocol):
    """Key/value store with implicit expiry (invite cooldowns)."""

    async def get(self, key: str) -> Any:
        """Return the stored value, or None if missing or expired."""
        ...

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value that expires after ``ttl`` seconds."""
        ...


class JobQueueProtocol(Protocol):
    """Receives sanitized chat-event records for later processing."""

    async def publish(self, event: dict[str, Any]) -> None:
        """Hand one event to the queue; raise PublishError on failure."""
        ...

    async def close(self) -> None:
        """Release network or file resources."""
        ...
