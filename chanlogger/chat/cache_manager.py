"""CacheManager for file-backed key/value storage with per-entry expiry.

Values are stored in a JSON object as ``{"value": ..., "expires": epoch|null}``.
Expired entries read as missing and are pruned on the next write. An
in-memory LRU avoids re-reading the file for hot keys.
"""

import asyncio
import json
import logging
import os
import tempfile
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from ..errors import CacheError
from .protocols import CacheProtocol

logger = logging.getLogger(__name__)


class CacheManager(CacheProtocol):
    """Asynchronous file-based cache manager with expiry and an LRU memory cache.

    Attributes:
        _cache_file_path (str): Path to the JSON cache file.
        _lock (asyncio.Lock): Lock for synchronizing file operations.
        _memory_cache (OrderedDict): In-memory LRU cache of raw entries.
        _max_cache_size (int): Maximum size of memory cache.

    Example:
        >>> cache = CacheManager("cache.json")
        >>> await cache.set("cooldown", 1700000000.0, ttl=3600)
        >>> await cache.get("cooldown")
        1700000000.0
    """

    def __init__(
        self,
        cache_file_path: str,
        max_cache_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the CacheManager.

        Args:
            cache_file_path: Path to the JSON file used for caching. The
                directory will be created if it doesn't exist.
            max_cache_size: Maximum number of entries in memory cache.
            clock: Wall-clock source used for expiry.

        Raises:
            ValueError: If cache_file_path is empty or None.
        """
        if not cache_file_path:
            raise ValueError("cache_file_path cannot be empty")

        self._cache_file_path = cache_file_path
        self._lock = asyncio.Lock()
        self._memory_cache: OrderedDict[str, dict[str, Any]] = OrderedDict()
        self._max_cache_size = max_cache_size
        self._clock = clock

    def _expired(self, entry: dict[str, Any]) -> bool:
        expires = entry.get("expires")
        return expires is not None and expires <= self._clock()

    def _get_from_memory(self, key: str) -> dict[str, Any] | None:
        """Get entry from memory cache, moving to end (most recent)."""
        if key in self._memory_cache:
            self._memory_cache.move_to_end(key)
            return self._memory_cache[key]
        return None

    def _put_in_memory(self, key: str, entry: dict[str, Any]) -> None:
        """Put entry in memory cache with LRU eviction."""
        if key in self._memory_cache:
            self._memory_cache.move_to_end(key)
        elif len(self._memory_cache) >= self._max_cache_size:
            self._memory_cache.popitem(last=False)
        self._memory_cache[key] = entry

    def _load_data(self) -> dict[str, Any]:
        """Load cache data from file with recovery.

        Raises:
            CacheError: If file cannot be read (non-corruption errors).
        """
        try:
            if not os.path.exists(self._cache_file_path):
                return {}
            with open(self._cache_file_path, encoding="utf-8") as f:
                content = f.read()
            if not content.strip():
                return {}
            data = json.loads(content)
            return data if isinstance(data, dict) else {}
        except json.JSONDecodeError as e:
            logger.warning(
                f"Corrupted JSON in cache file {self._cache_file_path}, recovering with empty cache: {e}"
            )
            try:
                backup_path = f"{self._cache_file_path}.corrupted"
                os.rename(self._cache_file_path, backup_path)
                logger.info(f"Backed up corrupted cache to {backup_path}")
            except OSError:
                pass  # Ignore backup failure
            return {}
        except OSError as e:
            raise CacheError(
                f"Failed to load cache from {self._cache_file_path}: {e}",
                operation_type="load_cache",
            ) from e

    def _save_data(self, data: dict[str, Any]) -> None:
        """Save cache data to file with atomic writes.

        Raises:
            CacheError: If file cannot be written.
        """
        directory = os.path.dirname(self._cache_file_path) or "."
        try:
            os.makedirs(directory, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=directory,
                prefix=os.path.basename(self._cache_file_path) + ".tmp",
                suffix=".json",
            )
            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self._cache_file_path)
            except (OSError, TypeError, ValueError):
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(
                f"Failed to save cache to {self._cache_file_path}: {e}",
                operation_type="save_cache",
            ) from e

    async def get(self, key: str) -> Any:
        """Retrieve a value, or None if missing or expired."""
        entry = self._get_from_memory(key)
        if entry is None:
            async with self._lock:
                entry = self._load_data().get(key)
            if not isinstance(entry, dict):
                return None
            self._put_in_memory(key, entry)
        if self._expired(entry):
            self._memory_cache.pop(key, None)
            return None
        return entry.get("value")

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store a value; it reads as missing once ``ttl`` seconds have passed."""
        entry = {
            "value": value,
            "expires": self._clock() + ttl if ttl is not None else None,
        }
        async with self._lock:
            data = {
                k: v
                for k, v in self._load_data().items()
                if isinstance(v, dict) and not self._expired(v)
            }
            data[key] = entry
            self._save_data(data)
            self._put_in_memory(key, entry)


class MemoryCache(CacheProtocol):
    """Process-local cache used when no cache file is configured."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._entries: dict[str, tuple[Any, float | None]] = {}
        self._clock = clock

    async def get(self, key: str) -> Any:
        item = self._entries.get(key)
        if item is None:
            return None
        value, expires = item
        if expires is not None and expires <= self._clock():
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        expires = self._clock() + ttl if ttl is not None else None
        self._entries[key] = (value, expires)
