"""
Operational constants for the channel logger.

Timing values that operators tune per network live in the configuration file.
The constants below are process-level knobs; each one can be overridden by an
environment variable with the same name.
"""

import os


def _get_env_int(name: str, default: int) -> int:
    """Retrieve an integer value from an environment variable.

    Args:
        name: The name of the environment variable to read.
        default: The default integer value to return if parsing fails.

    Returns:
        The parsed integer value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            print(
                f"Warning: Invalid integer value for {name}='{value}', using default {default}"
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Retrieve a float value from an environment variable.

    Args:
        name: The name of the environment variable to read.
        default: The default float value to return if parsing fails.

    Returns:
        The parsed float value from the environment, or the default if unavailable.
    """
    value = os.getenv(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            print(
                f"Warning: Invalid float value for {name}='{value}', using default {default}"
            )
    return default


# Socket polling
READ_POLL_TIMEOUT = _get_env_float(
    "READ_POLL_TIMEOUT", 0.5
)  # Seconds a single loop iteration waits for an incoming line
CONNECT_TIMEOUT = _get_env_float("CONNECT_TIMEOUT", 30.0)  # TCP/TLS open timeout
LOGIN_TIMEOUT = _get_env_float(
    "LOGIN_TIMEOUT", 120.0
)  # Max seconds between sending NICK/USER and the end-of-MOTD reply

# Well-known ports / markers
TLS_PORT = _get_env_int("TLS_PORT", 6697)
TLS_SCHEMES = ("ssl://", "tls://", "ircs://")
PLAIN_SCHEMES = ("irc://", "tcp://")

# Membership / topic pacing
JOIN_BATCH_SIZE = _get_env_int(
    "JOIN_BATCH_SIZE", 10
)  # Channels per comma-joined JOIN/PART command
TOPIC_REQUEST_SPACING = _get_env_float(
    "TOPIC_REQUEST_SPACING", 1.0
)  # Seconds between queued TOPIC queries
PENDING_INVITE_TIMEOUT = _get_env_float(
    "PENDING_INVITE_TIMEOUT", 120.0
)  # Seconds an invite may wait for its JOIN to be answered

# Publishing
PUBLISH_TIMEOUT = _get_env_float(
    "PUBLISH_TIMEOUT", 10.0
)  # Seconds before an HTTP job-queue publish is abandoned

# Wire defaults
DEFAULT_KICK_REASON = "kicked"
DEFAULT_PART_REASON = "Leaving"
SERVER_SOURCE = "*"  # Synthetic source for lines the server sent without a prefix
NICKSERV = "NickServ"

# Log file rotation defaults (overridable per config file)
LOG_MAX_BYTES = _get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024)
LOG_BACKUP_COUNT = _get_env_int("LOG_BACKUP_COUNT", 5)

# Config backups kept next to the config file
CONFIG_BACKUP_COUNT = _get_env_int("CONFIG_BACKUP_COUNT", 3)
