"""Line-oriented transport over an asyncio stream pair."""

from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass
from enum import Enum, auto

from ..constants import (
    CONNECT_TIMEOUT,
    PLAIN_SCHEMES,
    SERVER_SOURCE,
    TLS_PORT,
    TLS_SCHEMES,
)
from ..errors import TransportError
from ..logs.logger import logger


class ReadStatus(Enum):
    IDLE = auto()
    LINE = auto()
    DISCONNECTED = auto()


@dataclass(slots=True)
class ReadResult:
    status: ReadStatus
    line: str = ""


IDLE = ReadResult(ReadStatus.IDLE)
DISCONNECTED = ReadResult(ReadStatus.DISCONNECTED)


@dataclass(slots=True)
class Endpoint:
    host: str
    port: int
    tls: bool


def resolve_endpoint(host: str, port: int) -> Endpoint:
    """Pick TLS from an explicit scheme marker or the conventional TLS port."""
    lowered = host.lower()
    for scheme in TLS_SCHEMES:
        if lowered.startswith(scheme):
            return Endpoint(host[len(scheme):], port, True)
    for scheme in PLAIN_SCHEMES:
        if lowered.startswith(scheme):
            host = host[len(scheme):]
            break
    return Endpoint(host, port, port == TLS_PORT)


def normalize_line(raw: bytes) -> str:
    """Decode one wire line, drop IRCv3 tags and guarantee a source prefix.

    Bytes that are not valid UTF-8 are kept as surrogates so the publisher can
    still detect the original encoding.
    """
    line = raw.rstrip(b"\r\n").decode("utf-8", errors="surrogateescape")
    if line.startswith("@"):
        _, _, line = line.partition(" ")
    line = line.lstrip(" ")
    if line and not line.startswith(":"):
        line = f":{SERVER_SOURCE} {line}"
    return line


class LineTransport:
    """Owns the socket streams for one connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        endpoint: Endpoint,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.endpoint = endpoint

    @property
    def tls(self) -> bool:
        return self.endpoint.tls

    @classmethod
    async def open(
        cls,
        endpoint: Endpoint,
        *,
        verify: bool = True,
        timeout: float = CONNECT_TIMEOUT,
    ) -> LineTransport:
        ssl_context: ssl.SSLContext | None = None
        if endpoint.tls:
            ssl_context = ssl.create_default_context()
            if not verify:
                ssl_context.check_hostname = False
                ssl_context.verify_mode = ssl.CERT_NONE
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    endpoint.host,
                    endpoint.port,
                    ssl=ssl_context,
                    server_hostname=endpoint.host if ssl_context else None,
                ),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise TransportError(
                f"Timed out connecting to {endpoint.host}:{endpoint.port}",
                data={"host": endpoint.host, "port": endpoint.port, "tls": endpoint.tls},
            ) from e
        except OSError as e:
            raise TransportError(
                f"Could not connect to {endpoint.host}:{endpoint.port}: {e}",
                data={"host": endpoint.host, "port": endpoint.port, "tls": endpoint.tls},
            ) from e
        return cls(reader, writer, endpoint)

    async def read_line(self, timeout: float) -> ReadResult:
        try:
            raw = await asyncio.wait_for(self.reader.readline(), timeout=timeout)
        except TimeoutError:
            return IDLE
        except ValueError:
            # Line exceeded the stream limit; the reader already discarded it.
            logger.log_event("irc", "line_too_long", level=logging.WARNING)
            return IDLE
        except OSError as e:
            logger.log_event(
                "irc", "read_error", level=logging.WARNING, error=str(e)
            )
            return DISCONNECTED
        if not raw:
            return DISCONNECTED
        line = normalize_line(raw)
        if not line:
            return IDLE
        return ReadResult(ReadStatus.LINE, line)

    async def write_line(self, line: str) -> None:
        self.writer.write(f"{line}\r\n".encode("utf-8", errors="surrogateescape"))
        await self.writer.drain()

    async def close(self) -> None:
        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (OSError, ssl.SSLError) as e:
            logger.log_event(
                "irc", "close_error", level=logging.DEBUG, error=str(e)
            )
