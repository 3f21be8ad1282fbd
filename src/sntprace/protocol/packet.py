"""SNTP packet codec (RFC 2030).

Layout of the 48-byte header used here::

     0                   1                   2                   3
     0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1 2 3 4 5 6 7 8 9 0 1
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+
    |LI | VN  |Mode |    Stratum    |     Poll      |   Precision   |   0
    |                          Root Delay                           |   4
    |                       Root Dispersion                         |   8
    |                     Reference Identifier                      |  12
    |                   Reference Timestamp (64)                    |  16
    |                   Originate Timestamp (64)                    |  24
    |                    Receive Timestamp (64)                     |  32
    |                    Transmit Timestamp (64)                    |  40
    +-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+-+

Each timestamp is two big-endian unsigned 32-bit words: whole seconds since
1900-01-01T00:00:00 UTC and a fraction of a second over 2**32. All values
are handled as aware UTC datetimes; host-local time only appears through
``to_local``.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

SNTP_HEADER_LENGTH = 0x30
REFERENCE_TIMESTAMP_OFFSET = 0x10
ORIGINATE_TIMESTAMP_OFFSET = 0x18
RECEIVE_TIMESTAMP_OFFSET = 0x20
TRANSMIT_TIMESTAMP_OFFSET = 0x28

SNTP_DEFAULT_PORT = 123

LEAP_NO_WARNING = 0
CLIENT_VERSION = 3
MODE_CLIENT = 3
MODE_SERVER = 4
MODE_BROADCAST = 5

# 0b00_011_011: no leap warning, version 3, client mode
REQUEST_FLAGS = (LEAP_NO_WARNING << 6) | (CLIENT_VERSION << 3) | MODE_CLIENT

NTP_EPOCH = datetime(1900, 1, 1, tzinfo=timezone.utc)
FRACTION_SCALE = 0x100000000

_TIMESTAMP_FORMAT = "!II"
_HEADER_FORMAT = "!BBbb"


@dataclass(frozen=True)
class PacketHeader:
    leap_indicator: int
    version: int
    mode: int
    stratum: int
    poll: int
    precision: int


def _as_utc(when: datetime) -> datetime:
    # naive datetimes are host-local wall-clock time
    return when.astimezone(timezone.utc)


def to_milliseconds(buffer: bytes, field_offset: int) -> int:
    """Read a 32.32 timestamp field as milliseconds since the NTP epoch."""
    seconds, fraction = struct.unpack_from(_TIMESTAMP_FORMAT, buffer, field_offset)
    return seconds * 1000 + (fraction * 1000) // FRACTION_SCALE


def decode_timestamp(buffer: bytes, field_offset: int) -> datetime:
    """Decode the timestamp field at ``field_offset`` as an aware UTC datetime."""
    return NTP_EPOCH + timedelta(milliseconds=to_milliseconds(buffer, field_offset))


def encode_timestamp(buffer: bytearray, field_offset: int, when: datetime) -> None:
    """Write ``when`` into ``buffer`` at ``field_offset`` in 32.32 format."""
    milliseconds = (_as_utc(when) - NTP_EPOCH) // timedelta(milliseconds=1)
    int_part = milliseconds // 1000
    frac_part = ((milliseconds % 1000) * FRACTION_SCALE) // 1000
    if not 0 <= int_part < FRACTION_SCALE:
        raise ValueError(f"{when!r} is outside the NTP era 0 range")
    struct.pack_into(_TIMESTAMP_FORMAT, buffer, field_offset, int_part, frac_part)


def encode_request(current_time: datetime) -> bytes:
    """Build a client request carrying ``current_time`` as its transmit timestamp.

    The server echoes the transmit timestamp back in the Originate field,
    which is how the client later recovers T1.
    """
    packet = bytearray(SNTP_HEADER_LENGTH)
    packet[0] = REQUEST_FLAGS
    encode_timestamp(packet, TRANSMIT_TIMESTAMP_OFFSET, current_time)
    return bytes(packet)


def is_valid_response(buffer: bytes) -> bool:
    return len(buffer) >= SNTP_HEADER_LENGTH


def decode_header(buffer: bytes) -> PacketHeader:
    flags, stratum, poll, precision = struct.unpack_from(_HEADER_FORMAT, buffer, 0)
    return PacketHeader(
        leap_indicator=(flags >> 6) & 0x3,
        version=(flags >> 3) & 0x7,
        mode=flags & 0x7,
        stratum=stratum,
        poll=poll,
        precision=precision,
    )


def to_local(when: datetime) -> datetime:
    """Present an aware UTC datetime in the host's local time zone."""
    return when.astimezone()
