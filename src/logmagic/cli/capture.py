"""`logmagic capture` command implementation."""

import argparse
import logging
import signal
import sys
from pathlib import Path

from logmagic.capture import PaneLogger
from logmagic.cli.shared import configure_logging, exit_on_signals
from logmagic.config import load_config

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the capture daemon."""
    parser = argparse.ArgumentParser(
        prog="logmagic capture",
        description="Append a tmux pane's output (read from stdin) to a rotating log file",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", type=Path, help="Write diagnostics to this file")
    parser.add_argument(
        "log_dir",
        nargs="?",
        help="Directory for pane logs (default: ~/.tmux/logs or LOGMAGIC_LOG_DIR)",
    )
    parser.add_argument(
        "pane_id",
        nargs="?",
        default="default",
        help="Identifier used in the log file name (default: default)",
    )
    return parser


def run(argv: list[str]) -> int:
    """Execute the capture daemon until the pane's pipe closes."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug, args.log_file)

    config = load_config()
    log_dir = Path(args.log_dir).expanduser() if args.log_dir else config.log_dir
    logger = PaneLogger(
        log_dir,
        args.pane_id,
        max_bytes=config.max_log_bytes,
        check_interval=config.rotation_interval,
    )
    try:
        logger.prepare()
    except OSError as e:
        print(f"Error: cannot create log directory {log_dir}: {e}", file=sys.stderr)
        return 1

    exit_on_signals(signal.SIGTERM, signal.SIGHUP)
    logger.run(sys.stdin.fileno())
    return 0
