#!/usr/bin/env python3
"""Taskin sync server entry point.

This module provides a unified entry point for all interfaces:
- CLI: Administrative command-line interface
- Web: Sync server over HTTP

Usage:
    python -m taskin.main web [--port 8080]             # Start the sync server
    python -m taskin.main cli teams --user alice        # Use CLI
    python -m taskin.main -d /tmp/taskin cli --format json changes --user alice
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import NoReturn, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the unified argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description="Taskin - sync server for the Taskin task manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m taskin.main web --port 8080          Start the sync server on port 8080
  python -m taskin.main cli changes --user alice List changes visible to alice
  python -m taskin.main cli add-member G bob     Add bob to team G
""",
    )

    parser.add_argument(
        "-d", "--config-dir",
        type=Path,
        default=None,
        help="Custom configuration directory (default: ~/.config/taskin/)"
    )

    subparsers = parser.add_subparsers(dest="interface", help="Interface to use")

    from taskin.cli import add_cli_subparser
    add_cli_subparser(subparsers)

    from taskin.web import add_web_subparser
    add_web_subparser(subparsers)

    return parser


def configure_log_level(config_dir: Optional[Path]) -> None:
    """Apply the log level from the config file to the root logger."""
    from taskin.core.config import Config
    config = Config(config_dir=config_dir)
    logging.getLogger().setLevel(config.get_log_level())


def main() -> NoReturn:
    """Main entry point for Taskin.

    Parses arguments and dispatches to the appropriate interface.
    """
    parser = create_parser()
    args = parser.parse_args()

    if not args.interface:
        parser.print_help()
        sys.exit(1)

    configure_log_level(args.config_dir)

    if args.interface == "cli":
        from taskin.cli import run as run_cli
        exit_code = run_cli(args.config_dir, args)
    elif args.interface == "web":
        from taskin.web import run as run_web
        exit_code = run_web(args.config_dir, args)
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
