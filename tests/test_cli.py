"""Unit tests for logmagic.cli."""

import io
import os
from unittest.mock import MagicMock, patch

import pytest

from logmagic import __version__
from logmagic.cli import entrypoint, main
from logmagic.markers import format_end, format_prompt, format_start


def _capture_patches(**overrides):
    defaults = dict(
        PaneLogger=MagicMock(),
        exit_on_signals=MagicMock(),
    )
    defaults.update(overrides)
    return patch.multiple("logmagic.cli.capture", **defaults)


class TestDispatch:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_missing_command_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2

    def test_unknown_command_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["render"])
        assert exc_info.value.code == 2

    def test_entrypoint_exits_with_main_result(self):
        with patch("logmagic.cli.main", return_value=0):
            with pytest.raises(SystemExit) as exc_info:
                entrypoint()
        assert exc_info.value.code == 0


@pytest.fixture()
def pane_stdin(monkeypatch):
    """Replace stdin with a pipe carrying a short pane transcript."""
    read_fd, write_fd = os.pipe()
    os.write(write_fd, b"hello\r\n")
    os.close(write_fd)
    stdin = os.fdopen(read_fd, "rb")
    monkeypatch.setattr("sys.stdin", stdin)
    yield stdin
    stdin.close()


@pytest.mark.usefixtures("pane_stdin")
class TestCapture:
    def test_defaults_come_from_config(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOGMAGIC_LOG_DIR", str(tmp_path / "logs"))
        logger_cls = MagicMock()
        with _capture_patches(PaneLogger=logger_cls):
            assert main(["capture"]) == 0

        args, kwargs = logger_cls.call_args
        assert args == (tmp_path / "logs", "default")
        assert kwargs == {"max_bytes": 10485760, "check_interval": 60.0}
        logger_cls.return_value.run.assert_called_once()

    def test_positional_arguments(self, tmp_path):
        logger_cls = MagicMock()
        with _capture_patches(PaneLogger=logger_cls):
            assert main(["capture", str(tmp_path / "x"), "main-0-1-%3"]) == 0
        assert logger_cls.call_args[0] == (tmp_path / "x", "main-0-1-%3")

    def test_installs_signal_handlers_for_cleanup(self, tmp_path):
        exit_on_signals = MagicMock()
        with _capture_patches(exit_on_signals=exit_on_signals):
            main(["capture", str(tmp_path)])
        exit_on_signals.assert_called_once()

    def test_uncreatable_log_dir_exits_non_zero(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with patch("logmagic.cli.capture.exit_on_signals") as exit_on_signals:
            assert main(["capture", str(blocker / "logs"), "p"]) == 1
        exit_on_signals.assert_not_called()
        assert "Error: cannot create log directory" in capsys.readouterr().err

    def test_captures_stdin_end_to_end(self, tmp_path):
        with patch("logmagic.cli.capture.exit_on_signals"):
            assert main(["capture", str(tmp_path), "pane"]) == 0

        (log_file,) = tmp_path.glob("pane_*.log")
        assert log_file.read_bytes() == b"hello\r\n"


class TestMark:
    def test_start_then_end_inside_tmux(self, monkeypatch, state_dir, capsysbinary):
        monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
        with patch("logmagic.markers.time.time", return_value=1700000000):
            assert main(["mark", "--session", "42", "start", "--", "ls -la"]) == 0
        started = capsysbinary.readouterr().out
        marker_id = (state_dir / "sessions" / "42").read_text().strip()
        assert started == format_start(marker_id, 1700000000, "ls -la")

        assert main(["mark", "--session", "42", "end"]) == 0
        assert capsysbinary.readouterr().out == format_end(marker_id) + format_prompt()
        assert not (state_dir / "sessions" / "42").exists()

    def test_end_without_open_marker_only_marks_prompt(self, monkeypatch, state_dir, capsysbinary):
        monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
        assert main(["mark", "--session", "7", "end"]) == 0
        assert capsysbinary.readouterr().out == format_prompt()

    def test_sessions_are_independent(self, monkeypatch, state_dir, capsysbinary):
        monkeypatch.setenv("TMUX", "/tmp/tmux-1000/default,1,0")
        main(["mark", "--session", "1", "start", "--", "make"])
        capsysbinary.readouterr()

        main(["mark", "--session", "2", "end"])

        assert capsysbinary.readouterr().out == format_prompt()
        assert (state_dir / "sessions" / "1").exists()

    def test_outside_tmux_is_a_no_op(self, state_dir, capsysbinary):
        assert main(["mark", "--session", "42", "start", "--", "ls"]) == 0
        assert main(["mark", "--session", "42", "end"]) == 0
        assert capsysbinary.readouterr().out == b""
        assert not state_dir.exists()


class TestHook:
    def test_prints_zsh_snippet(self, capsys):
        assert main(["hook", "zsh"]) == 0
        assert "add-zsh-hook" in capsys.readouterr().out

    def test_tmux_snippet_uses_configured_paths(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("LOGMAGIC_LOG_DIR", str(tmp_path / "logs"))
        monkeypatch.setenv("LOGMAGIC_STATE_DIR", str(tmp_path / "shm"))
        assert main(["hook", "tmux"]) == 0
        out = capsys.readouterr().out
        assert f"capture {tmp_path / 'logs'} " in out
        assert str(tmp_path / "shm" / "public_ip") in out

    def test_unknown_shell_is_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["hook", "fish"])
        assert exc_info.value.code == 2


class TestNetmon:
    def test_runs_monitor_with_loaded_config(self, state_dir):
        monitor_cls = MagicMock()
        with patch.multiple(
            "logmagic.cli.netmon", NetworkMonitor=monitor_cls, exit_on_signals=MagicMock()
        ):
            assert main(["netmon"]) == 0
        assert monitor_cls.call_args[0][0].state_dir == state_dir
        monitor_cls.return_value.run.assert_called_once()

    def test_lock_failure_exits_non_zero(self, capsys):
        monitor_cls = MagicMock()
        monitor_cls.return_value.run.side_effect = PermissionError("read-only")
        with patch.multiple(
            "logmagic.cli.netmon", NetworkMonitor=monitor_cls, exit_on_signals=MagicMock()
        ):
            assert main(["netmon"]) == 1
        assert "Error: read-only" in capsys.readouterr().err


def _write_log(path, *commands):
    stream = io.BytesIO()
    stream.write(format_prompt())
    for marker_id, ts, command, output in commands:
        stream.write(f"$ {command}\r\n".encode())
        stream.write(format_start(marker_id, ts, command))
        stream.write(output)
        stream.write(format_end(marker_id) + format_prompt())
    path.write_bytes(stream.getvalue())


class TestHistory:
    @pytest.fixture()
    def log_file(self, tmp_path):
        path = tmp_path / "main-0-0-%1_20260101_000000.log"
        _write_log(
            path,
            ("id-1", 1700000000, "ls", b"a.txt\r\n"),
            ("id-2", 1700000060, "whoami", b"root\r\n"),
        )
        return path

    def test_prints_last_command_by_default(self, log_file, capsys):
        assert main(["history", "--log", str(log_file)]) == 0
        assert capsys.readouterr().out == "$ whoami\r\nroot\n"

    def test_prints_nth_last_command(self, log_file, capsys):
        assert main(["history", "--log", str(log_file), "--last", "2"]) == 0
        assert capsys.readouterr().out == "$ ls\r\na.txt\n"

    def test_out_of_range_last_falls_back_to_latest(self, log_file, capsys):
        assert main(["history", "--log", str(log_file), "--last", "9"]) == 0
        assert "whoami" in capsys.readouterr().out

    def test_prints_command_by_id(self, log_file, capsys):
        assert main(["history", "--log", str(log_file), "--id", "id-1"]) == 0
        assert "a.txt" in capsys.readouterr().out

    def test_unknown_id_exits_non_zero(self, log_file, capsys):
        assert main(["history", "--log", str(log_file), "--id", "nope"]) == 1
        assert "not found" in capsys.readouterr().err

    def test_list_prints_table(self, log_file, capsys):
        assert main(["history", "--log", str(log_file), "--list"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].startswith("Timestamp")
        assert len(lines) == 4
        assert lines[2].split(" | ")[1].strip() == "id-1"
        assert lines[2].endswith("| ls")
        assert lines[3].endswith("| whoami")

    def test_searches_log_dir(self, log_file, capsys):
        with patch("logmagic.cli.history.current_pane_prefix", return_value=None):
            assert main(["history", "--log-dir", str(log_file.parent)]) == 0
        assert "whoami" in capsys.readouterr().out

    def test_id_search_spans_all_logs(self, log_file, capsys):
        newer = log_file.parent / "main-0-1-%2_20260102_000000.log"
        _write_log(newer, ("id-9", 1700000100, "date", b"today\r\n"))
        with patch("logmagic.cli.history.current_pane_prefix", return_value="main-0-1-%2"):
            assert main(["history", "--log-dir", str(log_file.parent), "--id", "id-1"]) == 0
        assert "a.txt" in capsys.readouterr().out

    def test_empty_log_dir_exits_non_zero(self, tmp_path, capsys):
        with patch("logmagic.cli.history.current_pane_prefix", return_value=None):
            assert main(["history", "--log-dir", str(tmp_path)]) == 1
        assert "no log files found" in capsys.readouterr().err

    def test_missing_log_file_exits_non_zero(self, tmp_path, capsys):
        assert main(["history", "--log", str(tmp_path / "missing.log")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_log_without_commands_exits_non_zero(self, tmp_path, capsys):
        path = tmp_path / "empty.log"
        path.write_bytes(b"$ ")
        assert main(["history", "--log", str(path)]) == 1
        assert "no matching command" in capsys.readouterr().err
