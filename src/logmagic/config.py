"""Configuration for logmagic."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from logmagic.models import DEFAULT_LOG_DIR, DEFAULT_MAX_LOG_BYTES, LogmagicConfig

log = logging.getLogger(__name__)

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "DEFAULT_LOG_DIR",
    "DEFAULT_MAX_LOG_BYTES",
    "LogmagicConfig",
    "load_config",
]

CONFIG_DIR = Path.home() / ".logmagic"
CONFIG_FILE = CONFIG_DIR / "config.json"


def load_config() -> LogmagicConfig:
    """Load config from file, with env var overrides.

    Reads ``~/.logmagic/config.json`` and applies environment variable
    overrides (``LOGMAGIC_LOG_DIR``, ``LOGMAGIC_STATE_DIR`` and
    ``LOGMAGIC_MAX_LOG_BYTES``).  Falls back to defaults when the file is
    absent, contains invalid JSON, or holds values that fail validation.

    Returns:
        The resolved ``LogmagicConfig`` instance.
    """
    raw_config: dict[str, Any] = {}

    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE) as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            log.warning(
                "unreadable config in %s (%s); falling back to defaults",
                CONFIG_FILE,
                exc,
            )
        else:
            if isinstance(loaded, dict):
                raw_config = loaded
            log.debug("loaded config from %s", CONFIG_FILE)

    try:
        config = LogmagicConfig.model_validate(raw_config)
    except ValidationError as exc:
        log.warning("invalid config values in %s (%s); falling back to defaults", CONFIG_FILE, exc)
        config = LogmagicConfig()

    # Env var overrides
    if log_dir := os.environ.get("LOGMAGIC_LOG_DIR"):
        config.log_dir = Path(log_dir).expanduser()
    if state_dir := os.environ.get("LOGMAGIC_STATE_DIR"):
        config.state_dir = Path(state_dir).expanduser()
    if max_bytes_raw := os.environ.get("LOGMAGIC_MAX_LOG_BYTES"):
        try:
            max_bytes = int(max_bytes_raw.strip())
        except ValueError:
            max_bytes = 0
        if max_bytes > 0:
            config.max_log_bytes = max_bytes
        else:
            log.warning("ignoring invalid LOGMAGIC_MAX_LOG_BYTES=%r", max_bytes_raw)

    return config
