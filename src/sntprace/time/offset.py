"""Clock offset and round-trip delay from the four SNTP timestamps.

    T1 originate   client send time, echoed by the server
    T2 receive     server receipt time
    T3 transmit    server reply time
    T4 destination client receipt time

    offset = ((T2 - T1) + (T3 - T4)) / 2
    delay  = (T4 - T1) - (T3 - T2)

The offset estimate assumes the network delay is the same in both
directions. Results are whole milliseconds, truncated toward zero.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Union

Timestamp = Union[datetime, int, float]


def _span_ms(later: Timestamp, earlier: Timestamp) -> float:
    span = later - earlier
    if isinstance(span, timedelta):
        return span / timedelta(milliseconds=1)
    return float(span)


def clock_offset_ms(t1: Timestamp, t2: Timestamp, t3: Timestamp, t4: Timestamp) -> int:
    """Estimated true time minus local time, in milliseconds."""
    return int((_span_ms(t2, t1) + _span_ms(t3, t4)) / 2)


def round_trip_delay_ms(t1: Timestamp, t2: Timestamp, t3: Timestamp, t4: Timestamp) -> int:
    return int(_span_ms(t4, t1) - _span_ms(t3, t2))
