"""Command-line entry for familycal."""

from __future__ import annotations

import argparse
import sys
from typing import NoReturn

from . import run_server
from .exceptions import ConfigurationError


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for familycal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="familycal",
        description="familycal - family calendar server with recurring events and reminders",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m familycal                          # Start server on default port (8080)
  python -m familycal --port 3000              # Start server on port 3000
  python -m familycal --config family.yaml     # Use a specific config file
        """,
    )

    parser.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port number for the web server (default: 8080, or from FAMILYCAL_SERVER_PORT env var)",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to a YAML config file (default: ./familycal.yaml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging for familycal modules",
    )

    return parser


def main() -> NoReturn:
    """Run the familycal CLI."""
    parser = _create_parser()
    args = parser.parse_args()

    try:
        run_server(args)
    except ConfigurationError as exc:
        print(f"familycal: {exc}", file=sys.stderr)
        sys.exit(2)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(0)


if __name__ == "__main__":
    main()
