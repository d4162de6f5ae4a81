"""Shared pytest fixtures for test isolation helpers."""

from pathlib import Path

import pytest

import logmagic.config as config_module


@pytest.fixture()
def logmagic_config_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[Path, Path]:
    """Redirect logmagic config paths to a temp directory."""
    config_dir = tmp_path / ".logmagic"
    config_file = config_dir / "config.json"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_file)
    return config_dir, config_file


@pytest.fixture()
def config_dir(logmagic_config_paths: tuple[Path, Path]) -> Path:
    return logmagic_config_paths[0]


@pytest.fixture()
def config_file(logmagic_config_paths: tuple[Path, Path]) -> Path:
    return logmagic_config_paths[1]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, logmagic_config_paths) -> None:
    """Keep the developer's tmux session and overrides out of every test."""
    for name in ("TMUX", "LOGMAGIC_LOG_DIR", "LOGMAGIC_STATE_DIR", "LOGMAGIC_MAX_LOG_BYTES"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the shared-memory state directory at a temp path."""
    path = tmp_path / "shm"
    monkeypatch.setenv("LOGMAGIC_STATE_DIR", str(path))
    return path
