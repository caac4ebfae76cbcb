r"""
Logging configuration module for the channel logger.

Console output goes through colorlog; when a log file is configured a
size-rotating file handler with timestamp prefixes is attached as well. The
log-rotate control signal ends up in :func:`rotate_logs`.
"""

import logging
import logging.handlers
import os
import sys
import time
from collections import defaultdict
from typing import Any

import colorlog

from .constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ErrorAggregator:
    """Aggregates error patterns so the debug dump can report them.

    Tracks error frequencies per category. The event loop is single-threaded,
    so no locking is needed.
    """

    def __init__(self):
        self.errors: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.start_time = time.time()

    def record_error(self, error_type: str, message: str, context: dict[str, Any] = None) -> None:
        """Record an error occurrence with context."""
        error_entry = {
            "timestamp": time.time(),
            "message": message,
            "context": context or {},
        }
        self.errors[error_type].append(error_entry)

        # Keep only recent errors (last 1000 per type)
        if len(self.errors[error_type]) > 1000:
            self.errors[error_type] = self.errors[error_type][-1000:]

    def get_error_summary(self) -> dict[str, Any]:
        """Get a summary of error patterns."""
        summary = {}
        current_time = time.time()
        runtime_hours = (current_time - self.start_time) / 3600

        for error_type, occurrences in self.errors.items():
            recent_count = len([e for e in occurrences if current_time - e["timestamp"] < 3600])  # last hour
            total_count = len(occurrences)
            rate_per_hour = total_count / max(runtime_hours, 1)

            summary[error_type] = {
                "total_count": total_count,
                "recent_count": recent_count,
                "rate_per_hour": rate_per_hour,
                "last_occurrence": occurrences[-1] if occurrences else None,
            }

        return summary

    def should_alert(self, error_type: str, threshold_rate: float = 10.0) -> bool:
        """Check if an error type should trigger an alert based on rate."""
        summary = self.get_error_summary()
        if error_type not in summary:
            return False
        return summary[error_type]["rate_per_hour"] > threshold_rate

    def log_summary_report(self) -> None:
        """Log a summary report of error patterns."""
        summary = self.get_error_summary()
        if not summary:
            logging.info("No errors recorded in current session")
            return

        logging.warning("🚨 ERROR SUMMARY REPORT")
        for error_type, stats in summary.items():
            logging.warning(
                f"  {error_type}: {stats['total_count']} total, "
                f"{stats['recent_count']} in last hour, "
                f"{stats['rate_per_hour']:.1f}/hour"
            )
            if stats["last_occurrence"]:
                logging.warning(f"    Last: {stats['last_occurrence']['message']}")


# Global error aggregator instance
error_aggregator = ErrorAggregator()


def log_structured_error(
    error_type: str,
    message: str,
    exception: Exception = None,
    context: dict[str, Any] = None,
    level: int = logging.ERROR
) -> None:
    """Log an error with structured context and aggregation.

    Args:
        error_type: Category of the error (e.g., 'transport', 'publish', 'config')
        message: Descriptive error message
        exception: The exception that occurred (optional)
        context: Additional context data for debugging
        level: Logging level (default: ERROR)
    """
    structured_message = f"[{error_type.upper()}] {message}"

    if exception:
        structured_message += f" | Exception: {type(exception).__name__}: {str(exception)}"

    if context:
        context_str = " | ".join(f"{k}={v}" for k, v in context.items())
        structured_message += f" | Context: {context_str}"

    logging.log(level, structured_message)

    error_aggregator.record_error(error_type, message, context)

    if error_aggregator.should_alert(error_type):
        logging.critical(
            f"🚨 HIGH ERROR RATE ALERT: {error_type} occurring at "
            f"{error_aggregator.get_error_summary()[error_type]['rate_per_hour']:.1f}/hour"
        )


class LoggerConfigurator:
    """Handles logging configuration cleanly using colorlog.

    Supports environment variable configuration for log levels.
    """

    def __init__(
        self,
        log_file: str | None = None,
        max_bytes: int = LOG_MAX_BYTES,
        backup_count: int = LOG_BACKUP_COUNT,
    ):
        self.log_file = log_file
        self.max_bytes = max_bytes
        self.backup_count = backup_count

    def configure(self) -> None:
        """Configure console (and optionally file) logging.

        Uses environment variables:
        - DEBUG: Set to 'true', '1', or 'yes' for DEBUG level, otherwise INFO
        """
        debug_env = os.environ.get("DEBUG", "").lower()
        log_level = logging.DEBUG if debug_env in ("true", "1", "yes") else logging.INFO

        formatter = colorlog.ColoredFormatter(
            "%(asctime)s %(log_color)s%(levelname)-8s%(reset)s %(message_log_color)s%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "magenta",
            },
            secondary_log_colors={
                "message": {
                    "ERROR": "red",
                    "CRITICAL": "magenta",
                }
            },
            reset=True,
        )

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        handlers: list[logging.Handler] = [handler]

        if self.log_file:
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=self.max_bytes,
                backupCount=self.backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers, force=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        # aiohttp access/client chatter is not interesting at INFO
        logging.getLogger("aiohttp").setLevel(logging.WARNING)


def rotate_logs() -> bool:
    """Force a rollover of every rotating file handler on the root logger.

    Returns:
        True if at least one file handler was rotated.
    """
    rotated = False
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.doRollover()
            rotated = True
    return rotated
