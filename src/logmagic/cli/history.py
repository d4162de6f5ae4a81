"""`logmagic history` command implementation."""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from logmagic.cli.shared import configure_logging
from logmagic.config import load_config
from logmagic.history import (
    current_pane_prefix,
    extract_commands,
    find_log_candidates,
    read_pane_log,
)
from logmagic.models import CommandBlock

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the history reader."""
    parser = argparse.ArgumentParser(
        prog="logmagic history",
        description="List captured commands or print one command block from a pane log",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--log", type=Path, help="Read this log file instead of searching")
    parser.add_argument("--log-dir", type=Path, help="Directory to search for pane logs")
    parser.add_argument("--list", action="store_true", help="List command history from the log")
    select = parser.add_mutually_exclusive_group()
    select.add_argument("--id", help="Print the command with this marker id")
    select.add_argument(
        "--last",
        type=int,
        default=1,
        metavar="N",
        help="Print the N-th most recent command (default: 1)",
    )
    return parser


def _format_table(blocks: list[CommandBlock]) -> str:
    lines = [
        f"{'Timestamp':<19} | {'UUID':<36} | Command",
        f"{'':-<19}-+-{'':-<36}-+-{'':-<40}",
    ]
    for block in blocks:
        if block.timestamp is not None:
            stamp = datetime.fromtimestamp(block.timestamp).strftime("%Y-%m-%d %H:%M:%S")
        else:
            stamp = "N/A"
        if block.command is not None:
            command = block.command
        else:
            command = block.output[:40].replace("\n", " ").replace("\r", "")
        lines.append(f"{stamp:<19} | {block.marker_id:<36} | {command}")
    return "\n".join(lines)


def _select(blocks: list[CommandBlock], last: int) -> CommandBlock | None:
    if not blocks:
        return None
    if 0 < last <= len(blocks):
        return blocks[-last]
    return blocks[-1]


def run(argv: list[str]) -> int:
    """Execute the history reader."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    if args.log is not None:
        if not args.log.exists():
            print(f"Error: log file not found: {args.log}", file=sys.stderr)
            return 1
        candidates = [args.log]
    else:
        log_dir = args.log_dir or load_config().log_dir
        candidates = find_log_candidates(log_dir, current_pane_prefix())
        if not candidates:
            print(f"Error: no log files found in {log_dir}", file=sys.stderr)
            return 1

    if args.id is not None:
        # Ids are unique, so search every log, newest first.
        for path in candidates:
            try:
                blocks = extract_commands(read_pane_log(path))
            except OSError as e:
                log.debug("skipping %s: %s", path, e)
                continue
            match = next((b for b in blocks if b.marker_id == args.id), None)
            if match is not None:
                print(match.output)
                return 0
        print(f"Error: command {args.id} not found", file=sys.stderr)
        return 1

    try:
        blocks = extract_commands(read_pane_log(candidates[0]))
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    log.debug("parsed %d commands from %s", len(blocks), candidates[0])

    if args.list:
        print(_format_table(blocks))
        return 0

    block = _select(blocks, args.last)
    if block is None:
        print("Error: no matching command found", file=sys.stderr)
        return 1
    print(block.output)
    return 0
