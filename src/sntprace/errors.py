"""Error taxonomy for SNTP queries."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple


class SntpError(Exception):
    """Base class for all SNTP client errors."""


class ResolutionError(SntpError):
    """Host name could not be resolved to an address."""

    def __init__(self, host: str, reason: Optional[BaseException] = None):
        self.host = host
        self.reason = reason
        super().__init__(f"Cannot resolve {host}: {reason or 'no addresses'}")


class TransportError(SntpError):
    """Socket send/receive failed or timed out."""


class MalformedResponseError(TransportError):
    """Datagram does not have the shape of an SNTP response."""


class NoServersConfiguredError(SntpError):
    def __init__(self):
        super().__init__("No servers configured")


class AllServersFailedError(SntpError):
    """Every query in a race failed.

    ``failures`` holds one ``(server, exception)`` pair per query, in the
    order the queries finished.
    """

    def __init__(self, failures: Sequence[Tuple[str, BaseException]]):
        self.failures: List[Tuple[str, BaseException]] = list(failures)
        details = "; ".join(f"{server}: {exc}" for server, exc in self.failures)
        super().__init__(f"All {len(self.failures)} servers failed ({details})")

    @property
    def causes(self) -> List[BaseException]:
        return [exc for _, exc in self.failures]

    @property
    def errors(self) -> Dict[str, BaseException]:
        return dict(self.failures)


class ClockSetError(SntpError):
    """The host clock could not be set."""
