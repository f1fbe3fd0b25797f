"""
Generation stream events.

Providers emit these events while a model generates; the stream session
controller forwards them unchanged and injects the two terminal control events
(`LoopDetected`, `MaxSessionTurnsReached`) when a guard trips. Events are frozen
once created so the controller can forward the exact object it received.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, ClassVar

from session_guard.core.common.exceptions import (
    LoopDetectionError,
    MaxSessionTurnsError,
    ProviderStreamError,
)
from session_guard.core.interfaces.model_bases import InternalDTO


class EventType(str, Enum):
    """Discriminator of a generation event."""

    CONTENT = "content"
    THOUGHT = "thought"
    TOOL_CALL = "tool_call"
    TOOL_RESPONSE = "tool_response"
    USAGE = "usage"
    FINISHED = "finished"
    ERROR = "error"
    LOOP_DETECTED = "loop_detected"
    MAX_SESSION_TURNS = "max_session_turns"


class LoopKind(str, Enum):
    """Which detector reported a loop."""

    TOOL_CALL = "tool_call"
    CONTENT = "content"
    SEMANTIC = "semantic"


@dataclass(frozen=True, kw_only=True)
class GenerationEvent(InternalDTO):
    """Base class for every event travelling through a generation stream."""

    event_type: ClassVar[EventType]

    provider: str | None = None
    model: str | None = None
    request_id: str | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        """Whether the controller stops the stream after this event."""
        return self.event_type in _TERMINAL_TYPES

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation keyed by ``type``."""
        data: dict[str, Any] = {"type": self.event_type.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, Mapping):
                value = dict(value)
            data[f.name] = value
        return data


@dataclass(frozen=True, kw_only=True)
class ContentDelta(GenerationEvent):
    """A fragment of generated text."""

    event_type: ClassVar[EventType] = EventType.CONTENT

    text: str
    is_delta: bool = True
    is_complete: bool = False


@dataclass(frozen=True, kw_only=True)
class Thought(GenerationEvent):
    """Thinking output surfaced by providers that expose it."""

    event_type: ClassVar[EventType] = EventType.THOUGHT

    subject: str = ""
    description: str = ""
    text: str = ""


@dataclass(frozen=True, kw_only=True)
class ToolCall(GenerationEvent):
    """The model asks for a tool invocation.

    ``arguments`` is either a mapping or the raw JSON string some providers
    stream for function arguments.
    """

    event_type: ClassVar[EventType] = EventType.TOOL_CALL

    tool_name: str
    arguments: Mapping[str, Any] | str = field(default_factory=dict)
    call_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class ToolResponse(GenerationEvent):
    event_type: ClassVar[EventType] = EventType.TOOL_RESPONSE

    tool_name: str
    result: Any = None
    success: bool = True
    call_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class Usage(GenerationEvent):
    event_type: ClassVar[EventType] = EventType.USAGE

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True, kw_only=True)
class Finished(GenerationEvent):
    event_type: ClassVar[EventType] = EventType.FINISHED

    finish_reason: str | None = None


@dataclass(frozen=True, kw_only=True)
class ErrorEvent(GenerationEvent):
    """Transport or provider level failure reported inside the stream."""

    event_type: ClassVar[EventType] = EventType.ERROR

    message: str
    code: str | None = None
    retryable: bool = False

    def to_error(self) -> ProviderStreamError:
        return ProviderStreamError(
            self.message,
            provider=self.provider,
            details={"code": self.code, "retryable": self.retryable},
        )


@dataclass(frozen=True, kw_only=True)
class LoopDetected(GenerationEvent):
    """Terminal event: the model entered a repetition cycle."""

    event_type: ClassVar[EventType] = EventType.LOOP_DETECTED

    kind: LoopKind
    prompt_id: str
    description: str = ""
    turn_count: int = 0
    repeat_count: int = 0

    def to_error(self) -> LoopDetectionError:
        return LoopDetectionError(
            self.description or f"{self.kind.value} loop detected",
            details={
                "kind": self.kind.value,
                "prompt_id": self.prompt_id,
                "turn_count": self.turn_count,
                "repeat_count": self.repeat_count,
            },
        )


@dataclass(frozen=True, kw_only=True)
class MaxSessionTurnsReached(GenerationEvent):
    """Terminal event: the session exceeded its turn budget."""

    event_type: ClassVar[EventType] = EventType.MAX_SESSION_TURNS

    current_turns: int
    max_turns: int
    prompt_id: str

    def to_error(self) -> MaxSessionTurnsError:
        return MaxSessionTurnsError(
            f"Session '{self.prompt_id}' reached {self.current_turns} turns "
            f"(maximum {self.max_turns})",
            details={
                "current_turns": self.current_turns,
                "max_turns": self.max_turns,
                "prompt_id": self.prompt_id,
            },
        )


_TERMINAL_TYPES = frozenset({EventType.LOOP_DETECTED, EventType.MAX_SESSION_TURNS})
