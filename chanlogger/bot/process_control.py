"""PID file handling and signalling of a running instance."""

from __future__ import annotations

import logging
import os
import signal
from pathlib import Path

from ..config.model import BotConfig

logger = logging.getLogger(__name__)

FLAG_SIGNALS = {
    "reload": signal.SIGHUP,
    "debug_dump": signal.SIGUSR1,
    "rotate_logs": signal.SIGUSR2,
    "quit": signal.SIGTERM,
}


def pid_path_for(config_path: str, config: BotConfig) -> Path:
    if config.pid_file:
        return Path(config.pid_file)
    return Path(f"{config_path}.pid")


def read_pid(path: Path) -> int | None:
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (OSError, ValueError):
        return None


def is_running(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


def running_pid(path: Path) -> int | None:
    """PID recorded in ``path`` if that process is still alive."""
    pid = read_pid(path)
    if pid is None or pid == os.getpid() or not is_running(pid):
        return None
    return pid


def write_pid(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(os.getpid()), encoding="utf-8")


def remove_pid(path: Path) -> None:
    if read_pid(path) != os.getpid():
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove pid file {path}: {e}")


def signal_running_instance(path: Path, action: str) -> bool:
    """Send the signal mapped to ``action`` to the instance owning ``path``.

    Returns:
        True if a live instance was signalled.
    """
    pid = running_pid(path)
    if pid is None:
        return False
    try:
        os.kill(pid, FLAG_SIGNALS[action])
    except ProcessLookupError:
        return False
    return True
