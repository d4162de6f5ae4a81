"""Event-driven public address monitor.

A single monitor per user watches ``ip monitor route`` and re-resolves the
host's public address whenever the default route changes, writing the result
(or a ``Retrying...`` / ``Offline`` sentinel) to a small state file that
status bars and other tooling read.
"""

import errno
import fcntl
import ipaddress
import logging
import os
import re
import secrets
import subprocess
import time
from pathlib import Path
from typing import Callable, Iterable

import psutil

from logmagic.constants import STATE_OFFLINE, STATE_RETRYING
from logmagic.models import LogmagicConfig

log = logging.getLogger(__name__)

# Route events that can change which interface (and so which address) we egress from:
# default routes, VPN catch-alls like 0.0.0.0/1, deletions and gateway changes.
ROUTE_CHANGE_RE = re.compile(r"default|0\.0\.0\.0|Deleted|via")
DEFAULT_ROUTE_RE = re.compile(r"default|0\.0\.0\.0/0")

# Substring identifying our own monitor in a process command line.
MONITOR_PROCESS_TAG = "netmon"


def is_route_change(line: str) -> bool:
    """Return whether a route monitor line can affect the public address."""
    return bool(ROUTE_CHANGE_RE.search(line))


def resolve_public_ip(config: LogmagicConfig | None = None) -> str | None:
    """Ask a public nameserver which address our query came from.

    Returns:
        The dotted-decimal IPv4 address, or ``None`` on any failure.
    """
    config = config or LogmagicConfig()
    cmd = [
        "dig",
        "+short",
        f"+time={config.dns_timeout}",
        f"+tries={config.dns_tries}",
        "txt",
        config.dns_query_name,
        f"@{config.dns_server}",
    ]
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=config.dns_timeout * config.dns_tries + 2,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError) as e:
        log.debug("dig failed: %s", e)
        return None

    lines = result.stdout.replace('"', "").split()
    candidate = lines[0] if lines else ""
    if not _is_dotted_quad(candidate):
        log.debug("dig returned no usable address (rc=%d): %r", result.returncode, result.stdout)
        return None
    return candidate


def has_default_route() -> bool:
    """Return whether the routing table currently has any default route."""
    try:
        result = subprocess.run(["ip", "route"], capture_output=True, text=True, timeout=5)
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError) as e:
        log.debug("ip route failed: %s", e)
        return False
    return bool(DEFAULT_ROUTE_RE.search(result.stdout))


def write_state(path: Path, value: str) -> None:
    """Atomically replace *path* with a single line holding *value*."""
    temp_file = path.with_name(f".{path.name}.{os.getpid()}.{secrets.token_hex(4)}.tmp")
    try:
        temp_file.write_text(value + "\n")
        os.replace(temp_file, path)
    except BaseException:
        # Also covers the SystemExit raised from a signal handler mid-write.
        temp_file.unlink(missing_ok=True)
        raise


def _is_dotted_quad(value: str) -> bool:
    if not re.fullmatch(r"[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+", value):
        return False
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def _monitor_process(pid: int) -> psutil.Process | None:
    """Return the running monitor with *pid*, or ``None`` if it is anything else."""
    if pid <= 0:
        return None
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return None
        cmdline = " ".join(proc.cmdline())
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None
    if "logmagic" in cmdline and MONITOR_PROCESS_TAG in cmdline:
        return proc
    return None


def is_monitor_process(pid: int) -> bool:
    """Return whether *pid* is alive and is a logmagic network monitor."""
    return _monitor_process(pid) is not None


class MonitorLockBusy(OSError):
    """Another monitor holds the lock and could not be superseded."""


class MonitorLock:
    """Single-owner token for the network monitor.

    The owner holds an exclusive ``flock`` on the lock file for its whole
    lifetime and records its PID in it.  A new monitor that finds the lock
    held stops the holder (only after confirming it runs a monitor) and takes
    the lock once the kernel releases it, so two monitors can never both own
    it.  A PID left behind by a crashed monitor holds no lock and is ignored.
    """

    def __init__(self, path: Path, pid: int | None = None):
        self.path = path
        self.pid = pid or os.getpid()
        self._fd: int | None = None

    def holder(self) -> int | None:
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def acquire(self, timeout: float = 5.0) -> None:
        """Become the lock owner, superseding any live previous owner.

        Raises:
            MonitorLockBusy: If the lock is still held after *timeout*.
            OSError: If the lock file cannot be opened or written.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            if not self._try_lock(fd):
                previous = self.holder()
                proc = _monitor_process(previous) if previous else None
                if proc is not None:
                    log.info("superseding running monitor %d", previous)
                    self._stop(proc, timeout)
                else:
                    log.debug("lock held by %s, which is not a known monitor", previous)
                self._wait_for_lock(fd, timeout, previous)
            os.ftruncate(fd, 0)
            os.pwrite(fd, f"{self.pid}\n".encode(), 0)
        except BaseException:
            os.close(fd)
            raise
        self._fd = fd

    def release(self) -> None:
        """Clear our PID and drop the lock.

        The file itself stays in place: unlinking it would let a waiter lock
        the orphaned inode while a newcomer locks a fresh one.
        """
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
        except OSError as e:
            log.debug("could not clear lock %s: %s", self.path, e)
        finally:
            os.close(fd)

    @staticmethod
    def _try_lock(fd: int) -> bool:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        return True

    def _wait_for_lock(self, fd: int, timeout: float, previous: int | None) -> None:
        deadline = time.monotonic() + timeout
        while not self._try_lock(fd):
            if time.monotonic() >= deadline:
                raise MonitorLockBusy(
                    errno.EAGAIN, f"monitor lock held by pid {previous}", str(self.path)
                )
            time.sleep(0.05)

    def _stop(self, proc: psutil.Process, timeout: float) -> None:
        try:
            proc.terminate()
        except psutil.NoSuchProcess:
            return
        _, alive = psutil.wait_procs([proc], timeout=timeout)
        for straggler in alive:
            log.warning("monitor %d ignored SIGTERM, killing it", straggler.pid)
            try:
                straggler.kill()
            except psutil.NoSuchProcess:
                pass


class NetworkMonitor:
    """Keep the public address state file current as routes change."""

    def __init__(
        self,
        config: LogmagicConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.state_file = config.public_ip_file
        self._clock = clock
        self._sleep = sleep
        self.last_check: float | None = None

    def refresh(self) -> str:
        """Resolve the public address and record the outcome."""
        address = resolve_public_ip(self.config)
        if address is not None:
            state = address
        elif has_default_route():
            state = STATE_RETRYING
        else:
            state = STATE_OFFLINE
        try:
            write_state(self.state_file, state)
        except OSError as e:
            log.warning("could not write %s: %s", self.state_file, e)
        log.info("public address: %s", state)
        return state

    def handle_event(self, line: str) -> bool:
        """Process one route monitor line; return whether a refresh ran."""
        if not is_route_change(line):
            return False
        now = self._clock()
        if self.last_check is not None and now - self.last_check < self.config.debounce_seconds:
            log.debug("debounced route event: %s", line.strip())
            return False
        log.debug("route change: %s", line.strip())
        # The event can arrive before the kernel finishes applying the change.
        self._sleep(self.config.settle_seconds)
        self.refresh()
        # The window opens when the attempt ends; events queued during a slow
        # lookup are dropped.
        self.last_check = self._clock()
        return True

    def watch(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.handle_event(line)

    def run(self) -> None:
        """Own the lock, then follow ``ip monitor route`` until killed."""
        self.config.state_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
        lock = MonitorLock(self.config.lock_file)
        lock.acquire()
        proc: subprocess.Popen | None = None
        try:
            self.refresh()
            proc = subprocess.Popen(
                ["ip", "monitor", "route"],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
            )
            self.watch(proc.stdout)
            log.warning("route monitor exited with %s", proc.wait())
        finally:
            if proc is not None and proc.poll() is None:
                proc.terminate()
                try:
                    proc.wait(timeout=5)
                except subprocess.TimeoutExpired:
                    proc.kill()
            lock.release()
