"""Command-line interface for logmagic."""

import argparse
import sys

from logmagic import __version__
from logmagic.cli import capture, history, hook, mark, netmon

COMMANDS = {
    "capture": capture.run,
    "netmon": netmon.run,
    "mark": mark.run,
    "hook": hook.run,
    "history": history.run,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logmagic",
        description="Capture tmux pane output with command boundary markers",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument("command", choices=sorted(COMMANDS), help="Subcommand to run")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    if args and args[0] in COMMANDS:
        return COMMANDS[args[0]](args[1:])
    # Only reached for --help, --version or an unknown command.
    build_parser().parse_args(args)
    return 2


def entrypoint() -> None:
    raise SystemExit(main())
