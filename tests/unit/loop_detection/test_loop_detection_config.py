"""Tests for loop detection configuration."""

from session_guard.loop_detection.config import (
    CONTENT_CHUNK_SIZE,
    CONTENT_LOOP_THRESHOLD,
    MAX_HISTORY_LENGTH,
    LoopDetectionConfig,
)
from session_guard.tool_call_loop.config import ToolCallLoopConfig


class TestLoopDetectionConfig:
    def test_default_config(self) -> None:
        config = LoopDetectionConfig()

        assert config.content_loop_threshold == CONTENT_LOOP_THRESHOLD == 10
        assert config.content_chunk_size == CONTENT_CHUNK_SIZE == 50
        assert config.max_history_length == MAX_HISTORY_LENGTH == 1000
        assert config.tool_call.max_repeats == 5
        assert config.validate() == []

    def test_from_dict(self) -> None:
        config = LoopDetectionConfig.from_dict(
            {
                "content_loop_threshold": 4,
                "content_chunk_size": "20",
                "max_history_length": 400,
                "tool_call": {"enabled": False, "max_repeats": 3},
            }
        )

        assert config.content_loop_threshold == 4
        assert config.content_chunk_size == 20
        assert config.max_history_length == 400
        assert config.tool_call.enabled is False
        assert config.tool_call.max_repeats == 3

    def test_from_dict_flat_tool_threshold(self) -> None:
        config = LoopDetectionConfig.from_dict({"tool_call_loop_threshold": 7})

        assert config.tool_call.max_repeats == 7
        assert config.tool_call.enabled is True

    def test_to_dict_round_trips_through_from_dict(self) -> None:
        config = LoopDetectionConfig(
            content_loop_threshold=3,
            content_chunk_size=15,
            max_history_length=300,
            tool_call=ToolCallLoopConfig(max_repeats=4),
        )

        assert LoopDetectionConfig.from_dict(config.to_dict()) == config

    def test_validate_reports_every_problem(self) -> None:
        config = LoopDetectionConfig(
            content_loop_threshold=1,
            content_chunk_size=0,
            max_history_length=-1,
            tool_call=ToolCallLoopConfig(max_repeats=1),
        )

        errors = config.validate()

        assert "content_loop_threshold must be at least 2" in errors
        assert "content_chunk_size must be positive" in errors
        assert "max_history_length must be at least content_chunk_size" in errors
        assert "tool_call.max_repeats must be at least 2" in errors

    def test_history_shorter_than_chunk_is_invalid(self) -> None:
        config = LoopDetectionConfig(content_chunk_size=100, max_history_length=50)

        assert config.validate() == [
            "max_history_length must be at least content_chunk_size"
        ]
