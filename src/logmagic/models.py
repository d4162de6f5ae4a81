"""Data models for logmagic."""

import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_LOG_DIR = Path.home() / ".tmux" / "logs"
DEFAULT_MAX_LOG_BYTES = 10 * 1024 * 1024
DEFAULT_DNS_SERVER = "ns1.google.com"
DEFAULT_DNS_QUERY_NAME = "o-o.myaddr.l.google.com"


def _default_state_dir() -> Path:
    """Return the per-user shared-memory directory for runtime state."""
    user = os.environ.get("USER") or str(os.getuid())
    shm = Path("/dev/shm")
    base = shm if shm.is_dir() else Path(tempfile.gettempdir())
    return base / f"tmux_{user}"


class LogmagicConfig(BaseModel):
    """Runtime configuration for logmagic."""

    log_dir: Path = Field(
        default=DEFAULT_LOG_DIR,
        description="Directory that receives pane logs. Overridden by LOGMAGIC_LOG_DIR.",
    )
    state_dir: Path = Field(
        default_factory=_default_state_dir,
        description=(
            "Per-user shared-memory directory holding the network state file, the "
            "monitor lock file and marker session slots. Overridden by LOGMAGIC_STATE_DIR."
        ),
    )
    max_log_bytes: int = Field(
        default=DEFAULT_MAX_LOG_BYTES,
        gt=0,
        description="Pane logs larger than this are rotated. Overridden by LOGMAGIC_MAX_LOG_BYTES.",
    )
    rotation_interval: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between pane log size checks.",
    )
    debounce_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Minimum spacing between two address resolutions triggered by route events.",
    )
    settle_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Delay before resolving so the routing table can finish changing.",
    )
    dns_timeout: int = Field(default=1, gt=0, description="Per-attempt DNS timeout in seconds.")
    dns_tries: int = Field(default=2, gt=0, description="Number of DNS attempts per resolution.")
    dns_server: str = Field(
        default=DEFAULT_DNS_SERVER,
        description="Nameserver queried for the public address TXT record.",
    )
    dns_query_name: str = Field(
        default=DEFAULT_DNS_QUERY_NAME,
        description="TXT record whose value is the querying host's public address.",
    )

    @property
    def public_ip_file(self) -> Path:
        return self.state_dir / "public_ip"

    @property
    def lock_file(self) -> Path:
        return self.state_dir / "monitor.pid"

    @property
    def session_dir(self) -> Path:
        return self.state_dir / "sessions"


class CommandBlock(BaseModel):
    """One command reconstructed from a matched Start/End marker pair."""

    marker_id: str
    timestamp: int | None = Field(default=None, description="Unix seconds at submission.")
    command: str | None = Field(default=None, description="Decoded command text, if present.")
    output: str = Field(
        default="",
        description="Prompt, command echo and output between the prompt and End markers.",
    )
