"""First-success race across several SNTP servers.

Every query starts at once. The first one to finish successfully settles a
single-assignment future; failures count down a shared remaining counter
and only the last one settles the future with the aggregate error. Once the
future is settled, queries still in flight are cancelled and never awaited.
"""

from __future__ import annotations

import asyncio
import functools
from typing import Awaitable, Callable, Iterable, List, Tuple

from sntprace.errors import AllServersFailedError, NoServersConfiguredError, ResolutionError
from sntprace.net.query import QueryResult, ServerDescriptor, ServerLike, as_descriptor, query_server
from sntprace.protocol.packet import SNTP_DEFAULT_PORT
from sntprace.utils.logging_config import get_logger

logger = get_logger(__name__)

Query = Callable[..., Awaitable[QueryResult]]


async def first_successful(
    servers: Iterable[ServerLike],
    query: Query = query_server,
    default_port: int = SNTP_DEFAULT_PORT,
    **query_kwargs,
) -> QueryResult:
    """Race ``query`` against every server and return the first success.

    Raises ``NoServersConfiguredError`` for an empty list without touching
    the network, and ``AllServersFailedError`` once every query has failed.
    An entry that cannot be parsed counts as a failed query for that entry.
    """
    entries = list(servers)
    if not entries:
        raise NoServersConfiguredError()

    loop = asyncio.get_running_loop()
    winner: asyncio.Future = loop.create_future()
    failures: List[Tuple[str, BaseException]] = []
    remaining = len(entries)

    def _fail(server: str, exc: BaseException) -> None:
        nonlocal remaining
        logger.warning("sntp_query_failed", server=server, error=str(exc))
        failures.append((server, exc))
        remaining -= 1
        if remaining == 0:
            winner.set_exception(AllServersFailedError(failures))

    def _on_done(server: ServerDescriptor, task: asyncio.Task) -> None:
        if winner.done():
            # late finisher; retrieve the outcome so it is not reported
            if not task.cancelled():
                task.exception()
            return
        exc = asyncio.CancelledError() if task.cancelled() else task.exception()
        if exc is None:
            logger.info("sntp_race_won", server=str(server))
            winner.set_result(task.result())
            return
        _fail(str(server), exc)

    tasks: List[asyncio.Task] = []
    for entry in entries:
        try:
            server = as_descriptor(entry, default_port)
        except ResolutionError as e:
            _fail(str(entry), e)
            continue
        task = asyncio.ensure_future(query(server, **query_kwargs))
        task.add_done_callback(functools.partial(_on_done, server))
        tasks.append(task)

    try:
        return await winner
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
