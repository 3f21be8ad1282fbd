"""Composable response checks.

A ``ResponseValidator`` runs a list of predicates over a received datagram.
Each predicate gets the raw response and the request that was sent, and
returns a reason string when the response must be rejected or ``None`` to
accept it. The length check always runs first so later predicates may read
header fields freely.
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from sntprace.errors import MalformedResponseError
from sntprace.protocol.packet import (
    MODE_BROADCAST,
    MODE_SERVER,
    ORIGINATE_TIMESTAMP_OFFSET,
    SNTP_HEADER_LENGTH,
    TRANSMIT_TIMESTAMP_OFFSET,
    decode_header,
    is_valid_response,
)

Check = Callable[[bytes, bytes], Optional[str]]


def has_header_length(response: bytes, request: bytes) -> Optional[str]:
    if not is_valid_response(response):
        return f"expected at least {SNTP_HEADER_LENGTH} bytes, got {len(response)}"
    return None


def mode_is_server(response: bytes, request: bytes) -> Optional[str]:
    mode = decode_header(response).mode
    if mode not in (MODE_SERVER, MODE_BROADCAST):
        return f"unexpected mode {mode}"
    return None


def originate_matches(response: bytes, request: bytes) -> Optional[str]:
    sent = request[TRANSMIT_TIMESTAMP_OFFSET:TRANSMIT_TIMESTAMP_OFFSET + 8]
    echoed = response[ORIGINATE_TIMESTAMP_OFFSET:ORIGINATE_TIMESTAMP_OFFSET + 8]
    if sent != echoed:
        return "originate timestamp does not match request"
    return None


class ResponseValidator:
    """Ordered list of response checks; the first rejection wins."""

    def __init__(self, checks: Sequence[Check] = ()):
        self.checks: List[Check] = [has_header_length, *checks]

    def reason(self, response: bytes, request: bytes = b"") -> Optional[str]:
        for check in self.checks:
            reason = check(response, request)
            if reason is not None:
                return reason
        return None

    def validate(self, response: bytes, request: bytes = b"") -> None:
        reason = self.reason(response, request)
        if reason is not None:
            raise MalformedResponseError(reason)

    def __call__(self, response: bytes, request: bytes = b"") -> bool:
        return self.reason(response, request) is None


def default_validator() -> ResponseValidator:
    """Length-only validation."""
    return ResponseValidator()


def strict_validator() -> ResponseValidator:
    return ResponseValidator([mode_is_server, originate_matches])
