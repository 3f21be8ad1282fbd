"""Setting the host clock.

The SNTP core never touches the host clock itself; it hands a
``SystemTimeFields`` value to whatever ``SystemClock`` the caller supplies.
Setting the clock usually needs elevated privileges, so failures are
expected and surface as ``ClockSetError``.
"""

from __future__ import annotations

import ctypes
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

from sntprace.errors import ClockSetError
from sntprace.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SystemTimeFields:
    """Broken-down UTC time; ``day_of_week`` counts from Sunday = 0."""

    year: int
    month: int
    day_of_week: int
    day: int
    hour: int
    minute: int
    second: int
    milliseconds: int

    @classmethod
    def from_datetime(cls, when: datetime) -> "SystemTimeFields":
        when = when.astimezone(timezone.utc)
        return cls(
            year=when.year,
            month=when.month,
            day_of_week=when.isoweekday() % 7,
            day=when.day,
            hour=when.hour,
            minute=when.minute,
            second=when.second,
            milliseconds=when.microsecond // 1000,
        )

    def to_datetime(self) -> datetime:
        return datetime(
            self.year,
            self.month,
            self.day,
            self.hour,
            self.minute,
            self.second,
            self.milliseconds * 1000,
            tzinfo=timezone.utc,
        )


class SystemClock(Protocol):
    def set_time(self, fields: SystemTimeFields) -> None:
        ...


class _SYSTEMTIME(ctypes.Structure):
    _fields_ = [
        ("wYear", ctypes.c_ushort),
        ("wMonth", ctypes.c_ushort),
        ("wDayOfWeek", ctypes.c_ushort),
        ("wDay", ctypes.c_ushort),
        ("wHour", ctypes.c_ushort),
        ("wMinute", ctypes.c_ushort),
        ("wSecond", ctypes.c_ushort),
        ("wMilliseconds", ctypes.c_ushort),
    ]


class WindowsSystemClock:
    """kernel32 ``SetSystemTime``."""

    def set_time(self, fields: SystemTimeFields) -> None:
        st = _SYSTEMTIME(
            fields.year,
            fields.month,
            fields.day_of_week,
            fields.day,
            fields.hour,
            fields.minute,
            fields.second,
            fields.milliseconds,
        )
        kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)
        if not kernel32.SetSystemTime(ctypes.byref(st)):
            raise ClockSetError(f"SetSystemTime failed (error {ctypes.get_last_error()})")


class PosixSystemClock:
    """``clock_settime(CLOCK_REALTIME)``."""

    def set_time(self, fields: SystemTimeFields) -> None:
        try:
            time.clock_settime(time.CLOCK_REALTIME, fields.to_datetime().timestamp())
        except OSError as e:
            raise ClockSetError(f"clock_settime failed: {e}") from e


def default_system_clock() -> SystemClock:
    if sys.platform == "win32":
        return WindowsSystemClock()
    if hasattr(time, "clock_settime"):
        return PosixSystemClock()
    raise ClockSetError(f"Setting the clock is not supported on {sys.platform}")
