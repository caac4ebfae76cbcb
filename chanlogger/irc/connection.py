"""Connection & reconnection logic."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    wait_exponential,
)

from ..constants import LOGIN_TIMEOUT, NICKSERV, READ_POLL_TIMEOUT
from ..errors import LoginError, TransportError, log_error
from ..logs.logger import logger
from .models import ConnectionState
from .parser import parse_irc_message
from .transport import LineTransport, ReadStatus, resolve_endpoint

if TYPE_CHECKING:  # pragma: no cover
    from ..bot.core import ChannelLoggerBot

READY_NUMERICS = ("376", "422")  # end of MOTD / MOTD missing
NICK_IN_USE = "433"


class ConnectionController:
    """Drives a transport through connect → login → ready, with backoff."""

    def __init__(self, bot: ChannelLoggerBot) -> None:
        self.bot = bot

    def _set_state(self, new_state: ConnectionState) -> None:
        session = self.bot.session
        if session.state != new_state:
            logger.log_event(
                "irc",
                "state_change",
                level=logging.DEBUG,
                network=self.bot.config.network,
                old_state=session.state.name,
                new_state=new_state.name,
            )
            session.state = new_state

    async def ensure_connected(self) -> bool:
        """Block until a session is ready.

        Returns:
            True once connected; False if quit was requested while the bot
            was disconnected (the caller exits instead of retrying).

        Raises:
            LoginError: The server refused the nickname.
        """
        session = self.bot.session
        if session.connected:
            return True
        if self.bot.signals.requested("quit"):
            return False

        config = self.bot.config
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(TransportError),
            wait=wait_exponential(multiplier=1, max=config.max_reconnect_interval),
            stop=self._stop_when_quitting,
            before_sleep=self._before_sleep,
            sleep=self.bot.sleep,
            reraise=False,
        )
        connected = False
        try:
            async for attempt in retrying:
                # quit may have arrived during the backoff sleep
                if self.bot.signals.requested("quit"):
                    break
                with attempt:
                    await self._connect_once()
                    connected = True
        except RetryError:
            pass
        if not connected:
            logger.log_event(
                "irc", "reconnect_abandoned", level=logging.WARNING,
                network=config.network,
            )
            return False

        self._on_connected()
        return True

    def _stop_when_quitting(self, retry_state: RetryCallState) -> bool:
        return self.bot.signals.requested("quit")

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        self.bot.session.backoff_seconds = int(delay)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.log_event(
            "irc",
            "reconnect_backoff_wait",
            level=logging.WARNING,
            network=self.bot.config.network,
            attempt=retry_state.attempt_number,
            remaining_wait=delay,
            error=str(error) if error else None,
        )

    async def _connect_once(self) -> None:
        config = self.bot.config
        session = self.bot.session
        endpoint = resolve_endpoint(config.host, config.port)
        self._set_state(ConnectionState.CONNECTING)
        logger.log_event(
            "irc",
            "connect_start",
            network=config.network,
            server=endpoint.host,
            port=endpoint.port,
            tls=endpoint.tls,
        )
        try:
            transport = await self.bot.transport_factory(endpoint, verify=config.tls_verify)
            session.transport = transport
            self._set_state(ConnectionState.AUTHENTICATING)
            await self._login(transport)
        except TransportError as e:
            log_error("Connection attempt failed", e, context={"network": config.network})
            await self._discard_transport()
            raise
        except LoginError:
            await self._discard_transport()
            raise

    async def _login(self, transport: LineTransport) -> None:
        config = self.bot.config
        session = self.bot.session
        session.nick = config.nick
        try:
            if config.server_password:
                await transport.write_line(f"PASS {config.server_password}")
            await transport.write_line(f"NICK {config.nick}")
            await transport.write_line(f"USER {config.ident_name} 0 * :{config.realname}")
        except OSError as e:
            raise TransportError(f"Login write failed: {e}") from e

        deadline = self.bot.clock() + LOGIN_TIMEOUT
        while self.bot.clock() < deadline:
            result = await transport.read_line(READ_POLL_TIMEOUT)
            if result.status is ReadStatus.IDLE:
                continue
            if result.status is ReadStatus.DISCONNECTED:
                hint = "" if transport.tls else " (a TLS/plaintext mismatch is a likely cause)"
                raise TransportError(f"Disconnected before the server was ready{hint}")
            message = parse_irc_message(result.line)
            if message.command == "PING":
                await transport.write_line(f"PONG :{message.trailing}")
            elif message.command == NICK_IN_USE:
                raise LoginError(
                    f"Nickname {config.nick} is already in use",
                    data={"nick": config.nick},
                )
            elif message.command in READY_NUMERICS:
                session.server_name = message.prefix or config.host
                if config.nickserv_password:
                    await transport.write_line(
                        f"PRIVMSG {NICKSERV} :IDENTIFY {config.nickserv_password}"
                    )
                return
        raise TransportError(f"No end-of-MOTD within {LOGIN_TIMEOUT:.0f}s")

    def _on_connected(self) -> None:
        session = self.bot.session
        session.backoff_seconds = None
        session.reset_connection_state()
        session.connected_since = time.time()
        self._set_state(ConnectionState.READY)
        self.bot.timers.reset(self.bot.clock())
        self.bot.health.touch_liveness()
        logger.log_event(
            "irc",
            "connect_success",
            network=self.bot.config.network,
            server=session.server_name,
        )

    async def _discard_transport(self) -> None:
        session = self.bot.session
        transport, session.transport = session.transport, None
        self._set_state(ConnectionState.DISCONNECTED)
        if transport is not None:
            await transport.close()

    async def drop(self, reason: str) -> None:
        """Close the live transport; the next loop iteration reconnects."""
        if self.bot.session.transport is None:
            return
        logger.log_event(
            "irc",
            "disconnected",
            level=logging.WARNING,
            network=self.bot.config.network,
            reason=reason,
        )
        await self._discard_transport()
