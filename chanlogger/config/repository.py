from __future__ import annotations

import fcntl
import glob
import hashlib
import json
import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..constants import CONFIG_BACKUP_COUNT
from ..errors import ConfigError
from .model import BotConfig


class ConfigRepository:
    """Repository for the JSON configuration file.

    Handles loading, change-detecting reloads and atomic saves with rotating
    backups. Saves of unchanged content are skipped.
    """

    def __init__(self, path: str | os.PathLike[str]):
        if not isinstance(path, str | os.PathLike):
            raise TypeError("path must be str or os.PathLike")
        self.path = str(path)
        self._last_checksum: str | None = None
        self._file_mtime: float | None = None
        self._file_size: int | None = None

    def _read_raw(self) -> dict[str, Any]:
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("configuration root must be a JSON object")
        return data

    def load(self) -> BotConfig:
        """Load and validate the configuration file.

        Raises:
            ConfigError: If the file is missing, unreadable or invalid.
        """
        try:
            st = os.stat(self.path)
            data = self._read_raw()
            config = BotConfig.from_dict(data)
        except (OSError, ValueError, ValidationError) as e:
            raise ConfigError(
                f"Cannot load configuration {self.path}: {e}", data={"path": self.path}
            ) from e
        self._file_mtime = st.st_mtime
        self._file_size = st.st_size
        self._last_checksum = self._compute_checksum(config.to_dict())
        return config

    def reload(self, current: BotConfig) -> BotConfig:
        """Return a fresh configuration if the file changed on disk.

        A file that vanished or no longer validates keeps ``current`` in effect.
        """
        try:
            st = os.stat(self.path)
        except OSError as e:
            logging.error(f"Configuration reload error: {e}")
            return current
        if self._file_mtime == st.st_mtime and self._file_size == st.st_size:
            return current
        try:
            return self.load()
        except ConfigError as e:
            logging.error(f"Configuration reload error, keeping previous: {e}")
            return current

    def _compute_checksum(self, data: dict[str, Any]) -> str:
        h = hashlib.sha256()
        # Stable JSON representation
        payload = json.dumps(
            data, sort_keys=True, separators=(",", ":"), default=str
        ).encode()
        h.update(payload)
        return h.hexdigest()

    def save(self, config: BotConfig) -> bool:
        """Save the configuration to the file.

        Returns:
            True if the file was written, False if skipped due to no changes.
        """
        data = config.to_dict()
        checksum = self._compute_checksum(data)
        if self._last_checksum == checksum:
            logging.debug("Skipped config save (checksum match)")
            return False

        self._prepare_dir()
        self._atomic_write(data)
        self._last_checksum = checksum
        st = os.stat(self.path)
        self._file_mtime = st.st_mtime
        self._file_size = st.st_size
        return True

    def _prepare_dir(self) -> None:
        config_dir = os.path.dirname(self.path)
        if config_dir and not os.path.exists(config_dir):
            os.makedirs(config_dir, mode=0o755, exist_ok=True)

    def _atomic_write(self, data: dict[str, Any]) -> None:
        config_path = Path(self.path)
        lock_path = config_path.with_suffix(config_path.suffix + ".lock")
        temp_path: str | None = None
        try:
            with open(lock_path, "w", encoding="utf-8") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                self._create_backup(config_path)
                with tempfile.NamedTemporaryFile(
                    mode="w",
                    dir=config_path.parent,
                    prefix=f".{config_path.name}.",
                    suffix=".tmp",
                    delete=False,
                    encoding="utf-8",
                ) as tmp:
                    json.dump(data, tmp, indent=2, sort_keys=True, default=str)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                    temp_path = tmp.name
                os.chmod(temp_path, 0o600)
                os.rename(temp_path, self.path)
                logging.info("💾 Config saved atomically")
        except (OSError, ValueError) as e:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
            logging.error(f"💥 Atomic config save failed: {type(e).__name__}")
            raise
        finally:
            try:
                os.unlink(lock_path)
            except OSError:
                pass

    def _create_backup(self, config_path: Path) -> None:
        """Create a rotating backup of the configuration file."""
        if not (config_path.exists() and config_path.is_file()):
            return
        try:  # pragma: no cover - filesystem timing nuances
            backup_dir = config_path.parent
            timestamp = time.time_ns()
            backup_name = backup_dir / f"{config_path.name}.bak.{timestamp}"
            shutil.copy2(config_path, backup_name)
            logging.debug("🗄️ Config backup created")
            backups = sorted(
                glob.glob(str(backup_dir / f"{config_path.name}.bak.*")),
                reverse=True,
            )
            for old in backups[CONFIG_BACKUP_COUNT:]:
                try:
                    os.unlink(old)
                except OSError:
                    pass
        except (OSError, ValueError) as e:
            logging.debug(f"💥 Config backup failed: {str(e)}")
