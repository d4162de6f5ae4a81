"""Unit tests for logmagic.models."""

import pytest
from pydantic import ValidationError

from logmagic.models import CommandBlock, LogmagicConfig


class TestCommandBlock:
    def test_minimal_block(self):
        block = CommandBlock(marker_id="abc")
        assert block.timestamp is None
        assert block.command is None
        assert block.output == ""

    def test_missing_marker_id_raises_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            CommandBlock()
        errors = exc_info.value.errors()
        assert errors[0]["type"] == "missing"
        assert errors[0]["loc"] == ("marker_id",)

    def test_model_serialization(self):
        block = CommandBlock(marker_id="abc", timestamp=1700000000, command="ls", output="$ ls")
        assert block.model_dump() == {
            "marker_id": "abc",
            "timestamp": 1700000000,
            "command": "ls",
            "output": "$ ls",
        }


class TestLogmagicConfig:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("max_log_bytes", 0),
            ("rotation_interval", 0),
            ("debounce_seconds", -1),
            ("dns_tries", 0),
        ],
    )
    def test_rejects_out_of_range_values(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            LogmagicConfig(**{field: value})
        assert exc_info.value.errors()[0]["loc"] == (field,)

    def test_paths_are_coerced(self):
        config = LogmagicConfig.model_validate({"log_dir": "/tmp/panes"})
        assert str(config.log_dir) == "/tmp/panes"
