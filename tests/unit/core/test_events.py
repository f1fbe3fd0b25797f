"""Tests for generation stream events."""

import dataclasses

import pytest
from session_guard.core.common.exceptions import (
    LoopDetectionError,
    MaxSessionTurnsError,
    ProviderStreamError,
)
from session_guard.core.domain.events import (
    ContentDelta,
    ErrorEvent,
    EventType,
    Finished,
    LoopDetected,
    LoopKind,
    MaxSessionTurnsReached,
    Thought,
    ToolCall,
    ToolResponse,
    Usage,
)


class TestGenerationEvents:
    def test_events_are_frozen(self) -> None:
        event = ContentDelta(text="hi")

        with pytest.raises(dataclasses.FrozenInstanceError):
            event.text = "changed"  # type: ignore[misc]

    def test_fields_are_keyword_only(self) -> None:
        with pytest.raises(TypeError):
            ContentDelta("hi")  # type: ignore[misc]

    def test_timestamp_defaults_to_creation_time(self) -> None:
        event = Finished()

        assert event.timestamp > 0

    @pytest.mark.parametrize(
        ("event", "expected"),
        [
            (ContentDelta(text="x"), EventType.CONTENT),
            (Thought(subject="plan"), EventType.THOUGHT),
            (ToolCall(tool_name="t"), EventType.TOOL_CALL),
            (ToolResponse(tool_name="t"), EventType.TOOL_RESPONSE),
            (Usage(), EventType.USAGE),
            (Finished(), EventType.FINISHED),
            (ErrorEvent(message="boom"), EventType.ERROR),
        ],
    )
    def test_provider_events_are_not_terminal(self, event, expected) -> None:
        assert event.event_type is expected
        assert event.is_terminal is False

    def test_control_events_are_terminal(self) -> None:
        loop = LoopDetected(kind=LoopKind.CONTENT, prompt_id="p")
        budget = MaxSessionTurnsReached(current_turns=4, max_turns=3, prompt_id="p")

        assert loop.is_terminal is True
        assert budget.is_terminal is True

    def test_to_dict(self) -> None:
        event = ToolCall(
            tool_name="read_file",
            arguments={"path": "a"},
            call_id="c1",
            provider="fake",
            timestamp=12.5,
        )

        assert event.to_dict() == {
            "type": "tool_call",
            "provider": "fake",
            "model": None,
            "request_id": None,
            "timestamp": 12.5,
            "tool_name": "read_file",
            "arguments": {"path": "a"},
            "call_id": "c1",
        }

    def test_to_dict_flattens_enums(self) -> None:
        data = LoopDetected(kind=LoopKind.SEMANTIC, prompt_id="p").to_dict()

        assert data["type"] == "loop_detected"
        assert data["kind"] == "semantic"


class TestEventErrors:
    def test_error_event_to_error(self) -> None:
        error = ErrorEvent(
            message="rate limited", code="429", retryable=True, provider="fake"
        ).to_error()

        assert isinstance(error, ProviderStreamError)
        assert error.provider == "fake"
        assert error.details == {"code": "429", "retryable": True}

    def test_loop_detected_to_error(self) -> None:
        error = LoopDetected(
            kind=LoopKind.TOOL_CALL, prompt_id="p", turn_count=2, repeat_count=5
        ).to_error()

        assert isinstance(error, LoopDetectionError)
        assert error.message == "tool_call loop detected"
        assert error.details["repeat_count"] == 5

    def test_max_turns_to_error(self) -> None:
        error = MaxSessionTurnsReached(
            current_turns=4, max_turns=3, prompt_id="p"
        ).to_error()

        assert isinstance(error, MaxSessionTurnsError)
        assert "4 turns" in error.message
        assert error.details == {"current_turns": 4, "max_turns": 3, "prompt_id": "p"}
