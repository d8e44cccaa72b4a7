"""
Command-line entry point.

Usage:
    python -m squid [--host HOST] [--port PORT]
"""

import argparse

from squid import config
from squid.main import run_server


def main() -> None:
    parser = argparse.ArgumentParser(description="RTMP Squid streaming backend")
    parser.add_argument("--host", default=config.HOST, help=f"Bind address (default: {config.HOST})")
    parser.add_argument("--port", type=int, default=config.PORT, help=f"HTTP port (default: {config.PORT})")
    args = parser.parse_args()
    run_server(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
