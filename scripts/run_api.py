"""Launch the autonomous trader API with the portfolio sync loop running."""

from __future__ import annotations

import argparse

import uvicorn

from autotrader.api import create_app
from autotrader.config import AppSettings
from autotrader.logger import configure_logging
from autotrader.runtime import build_runtime


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host interface to bind (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to bind the server (default: 8080).",
    )
    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Serve the API without starting the scheduled portfolio sync.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    settings = AppSettings()
    configure_logging(settings)

    runtime = build_runtime(settings)
    app = create_app(runtime, start_sync=not args.no_sync)
    try:
        uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    finally:
        runtime.shutdown()


if __name__ == "__main__":
    main()
