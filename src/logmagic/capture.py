"""Raw pane capture with size-based rotation.

tmux's ``pipe-pane`` feeds a pane's output to our stdin.  ``PaneLogger``
copies it byte-for-byte into an append-only log file while a background
``RotationChecker`` renames the file aside once it grows past the ceiling.

The writer never closes its descriptor during a rotation.  Bytes written
between the rename and the writer's next reopen land in the renamed file,
so the rotated segments concatenated in order always equal the input.
"""

import glob
import logging
import os
import re
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable

from logmagic.models import DEFAULT_MAX_LOG_BYTES

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536
DEFAULT_CHECK_INTERVAL = 60.0

_BACKUP_RE = re.compile(r"\.(\d+)\.bak$")


class RotationChecker:
    """Run *check* every *interval* seconds on a background thread.

    Use as a context manager: the thread starts on entry and is stopped and
    joined on exit, whichever way the ``with`` block is left.
    """

    def __init__(self, check: Callable[[], object], interval: float):
        self.check = check
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "RotationChecker":
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run_loop, name="logmagic-rotation", daemon=True
        )
        self._thread.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.check()
            except OSError as e:
                log.warning("rotation check failed: %s", e)


class PaneLogger:
    """Append one pane's output stream to ``<log_dir>/<pane_id>_<start>.log``."""

    def __init__(
        self,
        log_dir: Path,
        pane_id: str = "default",
        *,
        max_bytes: int = DEFAULT_MAX_LOG_BYTES,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        started: datetime | None = None,
    ):
        self.log_dir = Path(log_dir)
        self.pane_id = pane_id.replace("/", "-") or "default"
        self.max_bytes = max_bytes
        self.check_interval = check_interval
        started = started or datetime.now()
        self.log_path = self.log_dir / f"{self.pane_id}_{started:%Y%m%d_%H%M%S}.log"
        self._fd: int | None = None
        self._reopen = threading.Event()

    def prepare(self) -> None:
        """Create the log directory.

        Raises:
            OSError: If the directory cannot be created.
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def run(self, source_fd: int = 0) -> None:
        """Copy *source_fd* into the log until EOF."""
        self.prepare()
        log.debug("capturing fd %d into %s", source_fd, self.log_path)
        with RotationChecker(self.rotate_if_needed, self.check_interval):
            self._open()
            try:
                while True:
                    try:
                        chunk = os.read(source_fd, READ_CHUNK_SIZE)
                    except OSError as e:
                        # A pty returns EIO once its other side is gone.
                        log.debug("source read ended: %s", e)
                        break
                    if not chunk:
                        break
                    self.write(chunk)
            finally:
                self._close()
        log.debug("capture of %s finished", self.log_path)

    def write(self, data: bytes) -> None:
        """Append *data* to the active log, reopening after a rotation."""
        if self._fd is None or self._reopen.is_set():
            self._open()
        try:
            _write_all(self._fd, data)
        except OSError as e:
            log.warning("write to %s failed (%s); reopening", self.log_path, e)
            try:
                self._open()
                _write_all(self._fd, data)
            except OSError as e2:
                log.error("dropped %d bytes for %s: %s", len(data), self.log_path, e2)

    def rotate_if_needed(self) -> Path | None:
        """Rename the active log aside if it exceeds ``max_bytes``.

        Returns:
            The backup path when a rotation happened, otherwise ``None``.
        """
        try:
            size = self.log_path.stat().st_size
        except FileNotFoundError:
            return None
        if size <= self.max_bytes:
            return None

        stamp = int(time.time())
        backup = self._backup_path(stamp)
        while backup.exists():
            stamp += 1
            backup = self._backup_path(stamp)
        os.rename(self.log_path, backup)
        self._reopen.set()
        log.info("rotated %s (%d bytes) to %s", self.log_path, size, backup.name)
        return backup

    def segments(self) -> list[Path]:
        """Return rotated backups oldest first, followed by the live log."""
        return pane_log_segments(self.log_path)

    def _backup_path(self, stamp: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{stamp}.bak")

    def _open(self) -> None:
        self._reopen.clear()
        fd = os.open(self.log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        self._close()
        self._fd = fd

    def _close(self) -> None:
        if self._fd is not None:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = None


def pane_log_segments(log_path: Path) -> list[Path]:
    """Return the rotated backups of *log_path* in order, then *log_path* itself."""
    log_path = Path(log_path)
    backups: list[tuple[int, Path]] = []
    for candidate in log_path.parent.glob(f"{glob.escape(log_path.name)}.*.bak"):
        match = _BACKUP_RE.search(candidate.name)
        if match and candidate.name == f"{log_path.name}{match.group(0)}":
            backups.append((int(match.group(1)), candidate))
    segments = [path for _, path in sorted(backups)]
    if log_path.exists():
        segments.append(log_path)
    return segments


def _write_all(fd: int, data: bytes) -> None:
    view = memoryview(data)
    while view:
        written = os.write(fd, view)
        view = view[written:]
