#!/usr/bin/env python3
"""Launch a rendezvous server.

The server dials back to the address the client is listening on and then
serves an echo loop over that connection, standing in for a language server.
"""

import argparse
import asyncio
import logging
import sys

from rendezvous_shared import parse_address

from .dial import connect_back, serve_echo
from .exceptions import DialError


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Start a rendezvous server that connects back to a waiting client"
    )
    parser.add_argument(
        "--address",
        required=True,
        help="Address the client is listening on, e.g. 127.0.0.1:5000",
    )
    parser.add_argument(
        "--kind",
        default="R",
        help="Server flavour being started (default: R)",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for the outbound connection (default: 10)",
    )
    parser.add_argument(
        "--fail",
        action="store_true",
        help="Exit with an error before connecting (for testing failure reporting).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser.parse_args(argv)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


async def run(args) -> int:
    reader, writer = await connect_back(args.address, timeout_s=args.connect_timeout)
    logging.getLogger(__name__).info("%s server connected to %s", args.kind, args.address)
    await serve_echo(reader, writer)
    return 0


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    _configure_logging(args.log_level)

    try:
        parse_address(args.address)
    except ValueError as e:
        print(f"✗ Invalid address: {e}", file=sys.stderr)
        sys.exit(2)

    if args.fail:
        print(f"✗ {args.kind} server failed to start (--fail given)", file=sys.stderr)
        sys.exit(1)

    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        print("\n✓ Server stopped by user", file=sys.stderr)
        sys.exit(0)
    except DialError as e:
        print(f"✗ Error connecting to client: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
