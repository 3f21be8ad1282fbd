#!/usr/bin/env python3
"""Query SNTP servers once and print the corrected current time.

Usage examples:
  - python scripts/query_time.py
  - python scripts/query_time.py --server pool.ntp.org --server time.google.com
  - sudo python scripts/query_time.py --set-clock

Without --server the list comes from SNTP_SERVERS (see .env).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path


# Ensure src is on sys.path when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from sntprace.client import SntpClient  # noqa: E402
from sntprace.config.settings import settings  # noqa: E402
from sntprace.errors import ClockSetError  # noqa: E402
from sntprace.utils.logging_config import setup_logging  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser(description="One-shot SNTP time query")
    parser.add_argument(
        "--server",
        action="append",
        help="Server host or host:port; repeat to race several (default: SNTP_SERVERS)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.SNTP_TIMEOUT,
        help="Per-server receive timeout in seconds",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=settings.SNTP_STRICT_VALIDATION,
        help="Also require server mode and a matching originate timestamp",
    )
    parser.add_argument(
        "--set-clock",
        action="store_true",
        help="Set the system clock afterwards (needs privileges)",
    )
    parser.add_argument("--log-level", default=settings.SNTP_LOG_LEVEL)
    args = parser.parse_args()

    setup_logging(level=args.log_level, component="query_time")

    cfg = settings.model_copy(
        update={"SNTP_TIMEOUT": args.timeout, "SNTP_STRICT_VALIDATION": args.strict}
    )
    client = SntpClient(servers=args.server, settings=cfg)

    now = client.get_current_time()
    if now is None:
        print("Connection error.")
        return 1
    print(f"Current time: {now.isoformat(sep=' ', timespec='milliseconds')}")
    print(f"Offset: {client.last_result.offset_ms} ms (via {client.last_result.server})")

    if args.set_clock:
        try:
            client.set_time()
        except ClockSetError as e:
            print(f"Could not set clock: {e}")
            return 2
        print("System clock updated.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
