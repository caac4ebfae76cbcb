"""Job-queue implementations for outbound chat events."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from ..config.model import BotConfig
from ..constants import PUBLISH_TIMEOUT
from ..errors import PublishError
from .protocols import JobQueueProtocol

logger = logging.getLogger(__name__)


class HttpJobQueue(JobQueueProtocol):
    """POSTs each event as JSON to a queue endpoint.

    The aiohttp session is created on first use so the queue can be built
    before an event loop is running.
    """

    def __init__(
        self,
        url: str,
        session: aiohttp.ClientSession | None = None,
        timeout: float = PUBLISH_TIMEOUT,
    ) -> None:
        if not url:
            raise ValueError("url cannot be empty")
        self.url = url
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def publish(self, event: dict[str, Any]) -> None:
        session = await self._get_session()
        try:
            async with session.post(self.url, json=event) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise PublishError(
                        f"Queue rejected event (HTTP {response.status})",
                        data={"status": response.status, "body": body[:200]},
                    )
        except (aiohttp.ClientError, TimeoutError) as e:
            raise PublishError(f"Queue unreachable: {e}", data={"url": self.url}) from e

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()


class SpoolJobQueue(JobQueueProtocol):
    """Appends each event as one JSON line to a spool file."""

    def __init__(self, path: str) -> None:
        if not path:
            raise ValueError("path cannot be empty")
        self.path = path

    async def publish(self, event: dict[str, Any]) -> None:
        line = json.dumps(event, ensure_ascii=False, sort_keys=True)
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            raise PublishError(f"Spool write failed: {e}", data={"path": self.path}) from e

    async def close(self) -> None:
        return None


def build_job_queue(config: BotConfig) -> JobQueueProtocol | None:
    """Pick the queue implementation the configuration asks for."""
    if config.queue_url:
        return HttpJobQueue(config.queue_url)
    if config.queue_spool:
        return SpoolJobQueue(config.queue_spool)
    logger.warning("No queue_url or queue_spool configured; chat events will be dropped")
    return None
