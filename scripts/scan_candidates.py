#!/usr/bin/env python3
"""Rank universe symbols trading just above their 200-day EMA."""

from __future__ import annotations

import argparse
import json
from pathlib import Path

import pandas as pd

from autotrader.config import AppSettings
from autotrader.logger import configure_logging
from autotrader.runtime import build_runtime


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--top-k",
        type=int,
        default=None,
        help="Number of candidates to return (default: strategy max_open_positions).",
    )
    parser.add_argument(
        "--symbols",
        nargs="*",
        default=None,
        help="Override the configured universe symbols.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional path to write the candidates as JSON.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.top_k is not None and args.top_k <= 0:
        raise SystemExit("--top-k must be positive")

    overrides = {"universe_symbols": args.symbols} if args.symbols else {}
    settings = AppSettings(**overrides)
    configure_logging(settings)

    runtime = build_runtime(settings)
    try:
        if args.top_k is not None:
            candidates = runtime.scanner.scan(args.top_k)
        else:
            candidates = runtime.scanner.scan_with_strategy_parameters()
    finally:
        runtime.shutdown()

    rows = [candidate.to_dict() for candidate in candidates]
    if not rows:
        print("No candidates above their EMA.")
    else:
        print(pd.DataFrame(rows).to_string(index=False, float_format=lambda v: f"{v:.2f}"))

    if args.output is not None:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(json.dumps(rows, indent=2))
        print(f"Saved {len(rows)} candidates to {args.output}")


if __name__ == "__main__":
    main()
