#!/usr/bin/env python3
"""
Main entry point for the IRC channel logger
"""

import argparse
import asyncio
import logging
import sys

from .bot.core import ChannelLoggerBot
from .bot.process_control import (
    pid_path_for,
    remove_pid,
    running_pid,
    signal_running_instance,
    write_pid,
)
from .bot.signal_handler import SignalHandler
from .chat.cache_manager import CacheManager, MemoryCache
from .chat.job_queue import build_job_queue
from .config.model import BotConfig
from .config.repository import ConfigRepository
from .constants import LOG_BACKUP_COUNT, LOG_MAX_BYTES
from .errors import ConfigError, LoginError, log_error
from .logging_config import LoggerConfigurator

CONTROL_FLAGS = {
    "reload": "Ask the running instance to reload its configuration",
    "debug_dump": "Ask the running instance to log a state snapshot",
    "rotate_logs": "Ask the running instance to rotate its log file",
    "quit": "Ask the running instance to quit",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chanlogger", description="Log IRC channels to a job queue."
    )
    parser.add_argument("config", help="Path to the JSON configuration file")
    group = parser.add_mutually_exclusive_group()
    for flag, help_text in CONTROL_FLAGS.items():
        group.add_argument(
            f"--{flag.replace('_', '-')}",
            dest="action",
            action="store_const",
            const=flag,
            help=help_text,
        )
    return parser


def configure_logging(config: BotConfig | None = None) -> None:
    if config is None:
        LoggerConfigurator().configure()
        return
    LoggerConfigurator(
        log_file=config.log_file,
        max_bytes=config.log_max_bytes or LOG_MAX_BYTES,
        backup_count=config.log_backup_count or LOG_BACKUP_COUNT,
    ).configure()


async def main(repository: ConfigRepository, config: BotConfig) -> None:
    """Run the logger until it is asked to quit.

    Raises:
        LoginError: The server refused the nickname.
    """
    signals = SignalHandler()
    signals.setup_signal_handlers()
    cache = CacheManager(config.cache_file) if config.cache_file else MemoryCache()
    bot = ChannelLoggerBot(
        repository,
        config,
        cache=cache,
        job_queue=build_job_queue(config),
        signals=signals,
    )
    await bot.run()


def run(argv: list[str] | None = None) -> None:
    """Synchronous entry point for the application.

    Raises:
        SystemExit: With status 1 on a fatal configuration or login error.
    """
    args = build_parser().parse_args(argv)
    configure_logging()
    repository = ConfigRepository(args.config)
    try:
        config = repository.load()
    except ConfigError as e:
        log_error("Configuration error", e)
        sys.exit(1)
    pid_path = pid_path_for(args.config, config)

    if args.action:
        if not signal_running_instance(pid_path, args.action):
            logging.error(f"No running instance found for {args.config}")
            sys.exit(1)
        sys.exit(0)

    pid = running_pid(pid_path)
    if pid is not None:
        logging.error(f"Another instance is running (PID {pid}). Exiting.")
        sys.exit(1)

    configure_logging(config)
    write_pid(pid_path)
    try:
        asyncio.run(main(repository, config))
    except LoginError as e:
        log_error("Login failed", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    finally:
        remove_pid(pid_path)
        logging.info("Application shutdown complete")


if __name__ == "__main__":
    run()
