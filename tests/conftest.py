"""Shared fixtures: canned SNTP replies and a fake UDP time server."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from sntprace.protocol.packet import (
    ORIGINATE_TIMESTAMP_OFFSET,
    RECEIVE_TIMESTAMP_OFFSET,
    SNTP_HEADER_LENGTH,
    TRANSMIT_TIMESTAMP_OFFSET,
    encode_timestamp,
)

# LI=0, VN=4, Mode=4 (server)
SERVER_FLAGS = 0x24

BASE_TIME = datetime(2024, 5, 17, 12, 0, 0, tzinfo=timezone.utc)


def build_response(t1: datetime, t2: datetime, t3: datetime, flags: int = SERVER_FLAGS) -> bytes:
    packet = bytearray(SNTP_HEADER_LENGTH)
    packet[0] = flags
    packet[1] = 1  # stratum
    encode_timestamp(packet, ORIGINATE_TIMESTAMP_OFFSET, t1)
    encode_timestamp(packet, RECEIVE_TIMESTAMP_OFFSET, t2)
    encode_timestamp(packet, TRANSMIT_TIMESTAMP_OFFSET, t3)
    return bytes(packet)


class FixedClock:
    """Returns the given instants in order, then keeps returning the last."""

    def __init__(self, *instants: datetime):
        self.instants = list(instants)
        self.calls = 0

    def __call__(self) -> datetime:
        index = min(self.calls, len(self.instants) - 1)
        self.calls += 1
        return self.instants[index]


class FakeSntpServer(asyncio.DatagramProtocol):
    """Answers each request with the client's transmit field echoed as originate.

    ``mode`` is one of "reply", "short" or "silent".
    """

    def __init__(self, receive_delta_ms: int = 1000, hold_ms: int = 10, mode: str = "reply"):
        self.receive_delta_ms = receive_delta_ms
        self.hold_ms = hold_ms
        self.mode = mode
        self.requests = []
        self.transport = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.requests.append(data)
        if self.mode == "silent":
            return
        if self.mode == "short":
            self.transport.sendto(b"\x24" + bytes(20), addr)
            return
        reply = bytearray(SNTP_HEADER_LENGTH)
        reply[0] = SERVER_FLAGS
        reply[1] = 1
        reply[ORIGINATE_TIMESTAMP_OFFSET:ORIGINATE_TIMESTAMP_OFFSET + 8] = (
            data[TRANSMIT_TIMESTAMP_OFFSET:TRANSMIT_TIMESTAMP_OFFSET + 8]
        )
        received = BASE_TIME + timedelta(milliseconds=self.receive_delta_ms)
        encode_timestamp(reply, RECEIVE_TIMESTAMP_OFFSET, received)
        encode_timestamp(
            reply, TRANSMIT_TIMESTAMP_OFFSET, received + timedelta(milliseconds=self.hold_ms)
        )
        self.transport.sendto(bytes(reply), addr)


@pytest.fixture
def make_response():
    return build_response


@pytest_asyncio.fixture
async def fake_sntp_server():
    """Factory fixture: ``await fake_sntp_server(...)`` -> (protocol, port)."""
    transports = []

    async def start(**kwargs):
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: FakeSntpServer(**kwargs), local_addr=("127.0.0.1", 0)
        )
        transports.append(transport)
        return protocol, transport.get_extra_info("sockname")[1]

    yield start
    for transport in transports:
        transport.close()
