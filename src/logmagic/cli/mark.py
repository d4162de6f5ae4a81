"""`logmagic mark` command implementation, called from the shell hooks."""

import argparse
import os

from logmagic.cli.shared import configure_logging
from logmagic.config import load_config
from logmagic.markers import MarkerEmitter, SessionSlot


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the marker hook command."""
    parser = argparse.ArgumentParser(
        prog="logmagic mark",
        description="Emit a command boundary marker on stdout",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--session",
        type=int,
        default=None,
        help="Shell process id owning the open marker (default: parent process)",
    )
    parser.add_argument(
        "trigger",
        choices=["start", "end"],
        help="start: a command is about to run; end: a prompt is about to render",
    )
    parser.add_argument("command", nargs="*", help="Command line being run (start only)")
    return parser


def run(argv: list[str]) -> int:
    """Emit the marker for *trigger*; always succeeds so the shell is never disturbed."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    emitter = MarkerEmitter()
    if not emitter.enabled:
        return 0
    session = args.session or os.getppid()
    slot = SessionSlot(load_config().session_dir / str(session))
    emitter.open_id = slot.load()

    if args.trigger == "start":
        emitter.command_started(" ".join(args.command))
    else:
        emitter.prompt_rendering()
    slot.store(emitter.open_id)
    return 0
