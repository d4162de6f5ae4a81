"""`logmagic hook` command implementation."""

import argparse

from logmagic.config import load_config
from logmagic.hooks import HOOK_KINDS, render_hook


def build_parser() -> argparse.ArgumentParser:
    """Build parser for the hook snippet printer."""
    parser = argparse.ArgumentParser(
        prog="logmagic hook",
        description=(
            "Print integration snippets. Use `eval \"$(logmagic hook zsh)\"` in ~/.zshrc, "
            "or append `logmagic hook tmux` output to ~/.tmux.conf"
        ),
    )
    parser.add_argument("kind", choices=HOOK_KINDS, help="Snippet to print")
    parser.add_argument(
        "--executable",
        default="logmagic",
        help="Command the snippet uses to call logmagic (default: logmagic)",
    )
    return parser


def run(argv: list[str]) -> int:
    """Print the requested snippet."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    print(
        render_hook(
            args.kind,
            executable=args.executable,
            log_dir=config.log_dir,
            state_file=config.public_ip_file,
        ),
        end="",
    )
    return 0
