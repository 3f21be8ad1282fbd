"""Single-server SNTP round trip over UDP."""

from __future__ import annotations

import asyncio
import socket
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple, Union

from sntprace.errors import ResolutionError, TransportError
from sntprace.protocol.packet import (
    ORIGINATE_TIMESTAMP_OFFSET,
    RECEIVE_TIMESTAMP_OFFSET,
    SNTP_DEFAULT_PORT,
    TRANSMIT_TIMESTAMP_OFFSET,
    PacketHeader,
    decode_header,
    decode_timestamp,
    encode_request,
)
from sntprace.protocol.validation import ResponseValidator, default_validator
from sntprace.time.offset import clock_offset_ms, round_trip_delay_ms
from sntprace.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 3.0
RECEIVE_BUFFER_SIZE = 512

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ServerDescriptor:
    host: str
    port: int = SNTP_DEFAULT_PORT

    @classmethod
    def parse(cls, value: str, default_port: int = SNTP_DEFAULT_PORT) -> "ServerDescriptor":
        """Accept ``host``, ``host:port`` or ``[v6addr]:port``.

        An entry that cannot be turned into a host and port raises
        ``ResolutionError``, the same as a host that does not resolve.
        """
        value = value.strip()
        port: Optional[str] = None
        if value.startswith("["):
            host, _, rest = value[1:].partition("]")
            if rest:
                port = rest[1:] if rest.startswith(":") else rest
        elif value.count(":") == 1:
            host, port = value.split(":")
        else:
            host = value
        if not host:
            raise ResolutionError(value, ValueError("empty host"))
        if port is None:
            return cls(host, default_port)
        if not port.isdigit() or not 0 < int(port) < 65536:
            raise ResolutionError(value, ValueError(f"invalid port {port!r}"))
        return cls(host, int(port))

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


ServerLike = Union[ServerDescriptor, str]


def as_descriptor(server: ServerLike, default_port: int = SNTP_DEFAULT_PORT) -> ServerDescriptor:
    if isinstance(server, ServerDescriptor):
        return server
    return ServerDescriptor.parse(server, default_port)


@dataclass(frozen=True)
class QueryResult:
    """A validated response and the local time it arrived."""

    server: ServerDescriptor
    packet: bytes
    destination: datetime

    @property
    def header(self) -> PacketHeader:
        return decode_header(self.packet)

    @property
    def originate(self) -> datetime:
        return decode_timestamp(self.packet, ORIGINATE_TIMESTAMP_OFFSET)

    @property
    def receive(self) -> datetime:
        return decode_timestamp(self.packet, RECEIVE_TIMESTAMP_OFFSET)

    @property
    def transmit(self) -> datetime:
        return decode_timestamp(self.packet, TRANSMIT_TIMESTAMP_OFFSET)

    @property
    def offset_ms(self) -> int:
        return clock_offset_ms(self.originate, self.receive, self.transmit, self.destination)

    @property
    def delay_ms(self) -> int:
        return round_trip_delay_ms(self.originate, self.receive, self.transmit, self.destination)


async def resolve(server: ServerDescriptor) -> Tuple[int, int, tuple]:
    """Return ``(family, proto, sockaddr)`` for the first address of ``server``."""
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(server.host, server.port, type=socket.SOCK_DGRAM)
    except (OSError, UnicodeError) as e:
        raise ResolutionError(server.host, e) from e
    if not infos:
        raise ResolutionError(server.host)
    family, _, proto, _, address = infos[0]
    return family, proto, address


async def _round_trip(
    server: ServerDescriptor, validator: ResponseValidator, clock: Clock
) -> QueryResult:
    loop = asyncio.get_running_loop()
    log = logger.bind(server=str(server))

    family, proto, address = await resolve(server)
    sock = socket.socket(family, socket.SOCK_DGRAM, proto)
    try:
        sock.setblocking(False)
        request = encode_request(clock())
        try:
            await loop.sock_connect(sock, address)
            await loop.sock_sendall(sock, request)
            log.debug("sntp_request_sent", address=address[0])
            data = await loop.sock_recv(sock, RECEIVE_BUFFER_SIZE)
            destination = clock()
        except OSError as e:
            raise TransportError(f"{server}: {e}") from e
    finally:
        sock.close()

    validator.validate(data, request)
    log.debug("sntp_response_received", size=len(data))
    return QueryResult(server=server, packet=data, destination=destination)


async def query_server(
    server: ServerLike,
    timeout: float = DEFAULT_TIMEOUT,
    validator: Optional[ResponseValidator] = None,
    clock: Clock = utc_now,
) -> QueryResult:
    """Send one request to ``server`` and wait for one reply.

    ``timeout`` bounds the whole query, name lookup included. Any failure
    ends the query: there is no retry and no partial result. The socket is
    closed on every path out, including cancellation.
    """
    server = as_descriptor(server)
    try:
        return await asyncio.wait_for(
            _round_trip(server, validator or default_validator(), clock), timeout
        )
    except asyncio.TimeoutError as e:
        raise TransportError(f"No response from {server} within {timeout}s") from e
