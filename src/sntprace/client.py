"""SNTP client: race the configured servers and work out the local clock offset."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sntprace.config.settings import Settings
from sntprace.config.settings import settings as default_settings
from sntprace.errors import ClockSetError, SntpError
from sntprace.net.query import (
    DEFAULT_TIMEOUT,
    Clock,
    QueryResult,
    ServerDescriptor,
    ServerLike,
    query_server,
    utc_now,
)
from sntprace.net.race import Query, first_successful
from sntprace.protocol.packet import SNTP_DEFAULT_PORT, to_local
from sntprace.protocol.validation import default_validator, strict_validator
from sntprace.time.system_clock import SystemClock, SystemTimeFields, default_system_clock
from sntprace.utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OffsetResult:
    server: ServerDescriptor
    offset_ms: int
    delay_ms: int
    corrected_time: datetime

    @classmethod
    def from_query(cls, result: QueryResult, now: datetime) -> "OffsetResult":
        offset_ms = result.offset_ms
        return cls(
            server=result.server,
            offset_ms=offset_ms,
            delay_ms=result.delay_ms,
            corrected_time=now + timedelta(milliseconds=offset_ms),
        )


async def query_offset(
    servers: Iterable[ServerLike],
    timeout: float = DEFAULT_TIMEOUT,
    strict: bool = False,
    query: Query = query_server,
    clock: Clock = utc_now,
    default_port: int = SNTP_DEFAULT_PORT,
) -> OffsetResult:
    """Race ``servers`` once and compute the offset from the winning reply.

    Raises ``NoServersConfiguredError`` or ``AllServersFailedError``; no
    offset is produced unless some server answered.
    """
    validator = strict_validator() if strict else default_validator()
    result = await first_successful(
        servers,
        query=query,
        default_port=default_port,
        timeout=timeout,
        validator=validator,
        clock=clock,
    )
    offset = OffsetResult.from_query(result, clock())
    logger.info(
        "sntp_offset",
        server=str(offset.server),
        offset_ms=offset.offset_ms,
        delay_ms=offset.delay_ms,
    )
    return offset


class SntpClient:
    """One-shot SNTP client over a fixed server list."""

    def __init__(
        self,
        servers: Optional[Iterable[ServerLike]] = None,
        settings: Optional[Settings] = None,
        query: Query = query_server,
        clock: Clock = utc_now,
    ):
        self.settings = settings or default_settings
        # hosts without an explicit port use SNTP_PORT
        if servers is None:
            self.servers = list(self.settings.server_list)
        else:
            self.servers = list(servers)
        self.query = query
        self.clock = clock
        self.last_result: Optional[OffsetResult] = None

    async def query_offset(self) -> OffsetResult:
        result = await query_offset(
            self.servers,
            timeout=self.settings.SNTP_TIMEOUT,
            strict=self.settings.SNTP_STRICT_VALIDATION,
            query=self.query,
            clock=self.clock,
            default_port=self.settings.SNTP_PORT,
        )
        self.last_result = result
        return result

    def get_current_time(self) -> Optional[datetime]:
        """Corrected local time, or ``None`` if no server could be reached."""
        try:
            result = asyncio.run(self.query_offset())
        except SntpError as e:
            logger.error("connection_error", error=str(e))
            self.last_result = None
            return None
        return to_local(result.corrected_time)

    def set_time(self, system_clock: Optional[SystemClock] = None) -> SystemTimeFields:
        """Set the host clock to now plus the last measured offset."""
        if self.last_result is None:
            raise ClockSetError("No offset measured yet")
        system_clock = system_clock or default_system_clock()
        corrected = self.clock() + timedelta(milliseconds=self.last_result.offset_ms)
        fields = SystemTimeFields.from_datetime(corrected)
        try:
            system_clock.set_time(fields)
        except ClockSetError as e:
            logger.error("clock_set_failed", error=str(e))
            raise
        logger.info("clock_set", time=corrected.isoformat())
        return fields
