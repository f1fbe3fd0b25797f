"""Tests for tool call loop configuration."""

from session_guard.tool_call_loop.config import (
    TOOL_CALL_LOOP_THRESHOLD,
    ToolCallLoopConfig,
)


class TestToolCallLoopConfig:
    def test_defaults(self) -> None:
        config = ToolCallLoopConfig()

        assert config.enabled is True
        assert config.max_repeats == TOOL_CALL_LOOP_THRESHOLD == 5
        assert config.validate() == []

    def test_validate_rejects_single_repeat(self) -> None:
        assert ToolCallLoopConfig(max_repeats=1).validate() == [
            "max_repeats must be at least 2"
        ]

    def test_from_dict_and_to_dict(self) -> None:
        config = ToolCallLoopConfig.from_dict({"enabled": 0, "max_repeats": "3"})

        assert config.to_dict() == {"enabled": False, "max_repeats": 3}
