"""`logmagic netmon` command implementation."""

import argparse
import signal
import sys
from pathlib import Path

from logmagic.cli.shared import configure_logging, exit_on_signals
from logmagic.config import load_config
from logmagic.netmon import NetworkMonitor


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the network state monitor."""
    parser = argparse.ArgumentParser(
        prog="logmagic netmon",
        description="Track the public address across route changes (single instance per user)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Write diagnostics to this file")
    return parser


def run(argv: list[str]) -> int:
    """Run the monitor until it is superseded or killed."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug, args.log_file)

    exit_on_signals(signal.SIGTERM, signal.SIGHUP, signal.SIGINT)
    monitor = NetworkMonitor(load_config())
    try:
        monitor.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0
