"""Slice captured pane logs into command blocks using the embedded markers."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Literal

from logmagic.capture import pane_log_segments
from logmagic.constants import MARKER_RE, PANE_ID_FORMAT
from logmagic.markers import decode_command
from logmagic.models import CommandBlock

log = logging.getLogger(__name__)

MarkerKind = Literal["exec", "end", "prompt"]

_KINDS: dict[bytes, MarkerKind] = {
    b"LogExec:": "exec",
    b"LogEnd:": "end",
    b"LogPrompt": "prompt",
}


@dataclass(frozen=True)
class MarkerEvent:
    """A marker found in a captured byte stream."""

    kind: MarkerKind
    start: int
    end: int
    marker_id: str | None = None
    timestamp: int | None = None
    command: str | None = None


def iter_markers(data: bytes) -> Iterator[MarkerEvent]:
    """Yield every marker in *data* in stream order."""
    for match in MARKER_RE.finditer(data):
        kind = _KINDS[match.group(1)]
        payload = match.group(2).decode(errors="replace")
        if kind == "prompt":
            if payload:
                continue
            yield MarkerEvent(kind, match.start(), match.end())
        elif kind == "end":
            yield MarkerEvent(kind, match.start(), match.end(), marker_id=payload)
        else:
            yield _parse_exec(payload, match.start(), match.end())


def _parse_exec(payload: str, start: int, end: int) -> MarkerEvent:
    parts = payload.split("|")
    marker_id = parts[0]
    timestamp: int | None = None
    encoded: str | None = None
    if len(parts) == 2:
        # Older hooks wrote either id|ts or id|base64.
        if parts[1].isdigit():
            timestamp = int(parts[1])
        else:
            encoded = parts[1]
    elif len(parts) >= 3:
        timestamp = int(parts[1]) if parts[1].isdigit() else None
        encoded = parts[2]

    command: str | None = None
    if encoded:
        try:
            command = decode_command(encoded)
        except ValueError:
            log.debug("undecodable command payload for %s", marker_id)
    return MarkerEvent("exec", start, end, marker_id=marker_id, timestamp=timestamp, command=command)


def strip_markers(data: bytes) -> bytes:
    return MARKER_RE.sub(b"", data)


def extract_commands(data: bytes) -> list[CommandBlock]:
    """Return one block per Start marker that has a matching End marker.

    A block spans from the last prompt marker before the Start marker (so it
    includes the prompt and the echoed command line) up to the End marker.
    """
    events = list(iter_markers(data))
    closing: dict[int, MarkerEvent] = {}
    waiting: dict[str | None, list[int]] = {}
    for index, event in enumerate(events):
        if event.kind == "exec":
            waiting.setdefault(event.marker_id, []).append(index)
        elif event.kind == "end":
            for start_index in waiting.pop(event.marker_id, []):
                closing[start_index] = event

    blocks: list[CommandBlock] = []
    last_prompt: int | None = None
    for index, event in enumerate(events):
        if event.kind == "prompt":
            last_prompt = event.start
            continue
        if event.kind != "exec":
            continue
        end_event = closing.get(index)
        if end_event is None:
            continue
        begin = last_prompt if last_prompt is not None else event.start
        body = strip_markers(data[begin : end_event.start]).decode(errors="replace").strip()
        blocks.append(
            CommandBlock(
                marker_id=event.marker_id or "",
                timestamp=event.timestamp,
                command=event.command,
                output=body,
            )
        )
    return blocks


def read_pane_log(log_path: Path) -> bytes:
    """Return a pane's full captured stream, rotated segments included."""
    return b"".join(segment.read_bytes() for segment in pane_log_segments(log_path))


def current_pane_prefix() -> str | None:
    """Return the log file prefix of the tmux pane we are running in."""
    try:
        result = subprocess.run(
            ["tmux", "display-message", "-p", PANE_ID_FORMAT],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError) as e:
        log.debug("tmux display-message failed: %s", e)
        return None
    prefix = result.stdout.strip().replace("/", "-")
    return prefix or None


def find_log_candidates(log_dir: Path, pane_prefix: str | None = None) -> list[Path]:
    """Return pane logs newest first, the given pane's logs ahead of the rest."""
    if not log_dir.is_dir():
        log.debug("log directory %s does not exist", log_dir)
        return []
    stamped: list[tuple[float, Path]] = []
    for path in log_dir.glob("*.log"):
        try:
            stamped.append((path.stat().st_mtime, path))
        except FileNotFoundError:
            # Renamed by a rotation since the glob ran.
            log.debug("%s vanished during discovery", path)
    stamped.sort(key=lambda item: item[0], reverse=True)
    entries = [path for _, path in stamped]
    if not pane_prefix:
        return entries
    matches = [path for path in entries if path.name.startswith(pane_prefix)]
    others = [path for path in entries if not path.name.startswith(pane_prefix)]
    log.debug("found %d logs, %d for pane %s", len(entries), len(matches), pane_prefix)
    return matches + others
