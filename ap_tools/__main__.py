"""Run the API with uvicorn: ``python -m ap_tools``."""

from __future__ import annotations

import argparse

import uvicorn

from ap_tools import __version__


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="ap-tools",
        description="Ruckus AP diagnostics API",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="uvicorn log level (default: warning)",
    )
    parser.add_argument("--version", action="version", version=f"ap-tools {__version__}")
    args = parser.parse_args()

    uvicorn.run(
        "ap_tools.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
