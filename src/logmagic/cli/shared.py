"""Helpers shared by the logmagic subcommands."""

import logging
import signal
from pathlib import Path


def configure_logging(debug: bool, log_file: Path | None = None) -> None:
    """Configure root logging the same way for every subcommand.

    Daemons run detached from any terminal, so they can send diagnostics to
    *log_file* instead of stderr; those lines get a timestamp.
    """
    fmt = "%(name)s %(levelname)s: %(message)s"
    if log_file is not None:
        fmt = "%(asctime)s " + fmt
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=fmt,
        filename=log_file,
    )


def exit_on_signals(*signums: int) -> None:
    """Turn *signums* into ``SystemExit`` so ``finally`` blocks run."""

    def _raise_exit(signum, _frame):
        raise SystemExit(128 + signum)

    for signum in signums:
        signal.signal(signum, _raise_exit)
