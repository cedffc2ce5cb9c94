#!/usr/bin/env python3
"""Sync Kite holdings and net positions into positions.json."""

from __future__ import annotations

import argparse
import json

from autotrader.config import AppSettings
from autotrader.logger import configure_logging
from autotrader.runtime import build_runtime


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync tick and exit.",
    )
    parser.add_argument(
        "--ticks",
        type=int,
        default=None,
        help="Stop after this many ticks (default: run until interrupted).",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between the end of one tick and the start of the next.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    overrides = {"sync_interval_seconds": args.interval} if args.interval else {}
    settings = AppSettings(**overrides)
    configure_logging(settings)

    runtime = build_runtime(settings)
    loop = runtime.sync_loop
    try:
        if args.once:
            print(json.dumps(loop.run_once().to_dict(), indent=2))
            return
        loop.start(max_ticks=args.ticks)
        loop.join()
    except KeyboardInterrupt:
        print("Interrupted; stopping sync loop.")
    finally:
        runtime.shutdown()
    print(json.dumps(loop.status(), indent=2))


if __name__ == "__main__":
    main()
