"""Command-boundary markers emitted from inside the interactive shell.

The shell hooks call into this module twice per command: once when a command
is submitted (``command_started``) and once when the next prompt is about to
render (``prompt_rendering``).  Each call writes an invisible OSC sequence to
the shell's own stdout, which tmux pipes into the pane log.  Emission never
raises: a missing id source, a closed stream, or running outside tmux all
degrade to writing nothing.
"""

import base64
import logging
import os
import sys
import time
import uuid
from pathlib import Path
from typing import BinaryIO

from logmagic.constants import END_TAG, EXEC_TAG, OSC_PREFIX, OSC_TERMINATOR, PROMPT_TAG

log = logging.getLogger(__name__)

KERNEL_UUID_FILE = Path("/proc/sys/kernel/random/uuid")


def in_multiplexer() -> bool:
    """Return whether the current process runs inside a tmux pane."""
    return bool(os.environ.get("TMUX"))


def new_marker_id() -> str | None:
    """Return a fresh random identifier, or ``None`` when no source is available."""
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        log.debug("os.urandom unavailable, trying %s", KERNEL_UUID_FILE)
    try:
        marker_id = KERNEL_UUID_FILE.read_text().strip()
    except OSError as e:
        log.debug("no randomness source for marker ids: %s", e)
        return None
    return marker_id or None


def encode_command(command: str) -> str:
    """Encode command text so it cannot collide with the OSC terminator."""
    raw = command.encode("utf-8", errors="surrogateescape")
    return base64.b64encode(raw).decode("ascii")


def decode_command(payload: str) -> str:
    """Reverse ``encode_command``.

    Raises:
        ValueError: If *payload* is not valid base64.
    """
    raw = base64.b64decode(payload.encode("ascii"), validate=True)
    return raw.decode("utf-8", errors="surrogateescape")


def format_start(marker_id: str, timestamp: int, command: str) -> bytes:
    payload = f"{marker_id}|{timestamp}|{encode_command(command)}".encode("ascii")
    return OSC_PREFIX + EXEC_TAG + payload + OSC_TERMINATOR


def format_end(marker_id: str) -> bytes:
    return OSC_PREFIX + END_TAG + marker_id.encode("ascii") + OSC_TERMINATOR


def format_prompt() -> bytes:
    return OSC_PREFIX + PROMPT_TAG + OSC_TERMINATOR


class MarkerEmitter:
    """Emit Start/End/Prompt markers for one shell session.

    ``open_id`` is the session's single open-marker slot: it holds the id of
    the command currently running, or ``None`` between commands.
    """

    def __init__(
        self,
        stream: BinaryIO | None = None,
        *,
        open_id: str | None = None,
        enabled: bool | None = None,
    ):
        self._stream = stream
        self.open_id = open_id
        self.enabled = in_multiplexer() if enabled is None else enabled

    def command_started(self, command: str) -> str | None:
        """Emit a Start marker for *command* and return its id."""
        if not self.enabled:
            return None
        if self.open_id is not None:
            # A previous command never reached its prompt; close it first.
            self._emit(format_end(self.open_id))
            self.open_id = None

        marker_id = new_marker_id()
        if marker_id is None:
            return None
        self._emit(format_start(marker_id, int(time.time()), command))
        self.open_id = marker_id
        return marker_id

    def prompt_rendering(self) -> None:
        """Close the open marker, if any, and emit a prompt boundary."""
        if not self.enabled:
            return
        if self.open_id is not None:
            self._emit(format_end(self.open_id))
            self.open_id = None
        self._emit(format_prompt())

    def _emit(self, data: bytes) -> bool:
        stream = self._stream
        try:
            if stream is None:
                stream = sys.stdout.buffer
            stream.write(data)
            stream.flush()
        except (AttributeError, OSError, ValueError) as e:
            log.debug("marker emission skipped: %s", e)
            return False
        return True


class SessionSlot:
    """File-backed open-marker slot for hooks that run as separate processes."""

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> str | None:
        try:
            value = self.path.read_text().strip()
        except OSError:
            return None
        return value or None

    def store(self, marker_id: str | None) -> None:
        if marker_id is None:
            self.clear()
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            self.path.write_text(marker_id + "\n")
        except OSError as e:
            log.debug("could not persist marker slot %s: %s", self.path, e)

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            log.debug("could not clear marker slot %s: %s", self.path, e)
