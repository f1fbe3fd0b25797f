"""
Loop detection session.

One session holds the complete loop detection state of one conversation
(prompt). It combines the tool call tracker, the content tracker and the
turn-boundary semantic check behind a latch: once a loop is reported for a
prompt, every further check reports it again until the session is reset.

States:
    FRESH   -> never used since construction
    ACTIVE  -> analysing events for the current prompt
    LATCHED -> a loop was detected; analysis is skipped until ``reset``
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Any

from session_guard.core.domain.events import (
    ContentDelta,
    GenerationEvent,
    LoopKind,
    ToolCall,
)
from session_guard.core.interfaces.loop_detector_interface import (
    ILoopDetectionSession,
    ISemanticLoopChecker,
)
from session_guard.loop_detection.config import LoopDetectionConfig
from session_guard.loop_detection.content_tracker import ContentRepetitionTracker
from session_guard.loop_detection.event import LoopDetectionEvent
from session_guard.loop_detection.semantic import NoOpSemanticLoopChecker
from session_guard.tool_call_loop.tracker import ToolCallRepetitionTracker

logger = logging.getLogger(__name__)


class DetectionState(str, Enum):
    FRESH = "fresh"
    ACTIVE = "active"
    LATCHED = "latched"


class LoopDetectionSession(ILoopDetectionSession):
    """Per-conversation loop detection facade.

    All mutating operations are serialized by a single lock. Use one session
    per concurrently running conversation.
    """

    def __init__(
        self,
        config: LoopDetectionConfig | None = None,
        semantic_checker: ISemanticLoopChecker | None = None,
    ) -> None:
        self.config = config or LoopDetectionConfig()
        errors = self.config.validate()
        if errors:
            raise ValueError(
                "Invalid loop detection configuration: " + ", ".join(errors)
            )

        self._semantic_checker = semantic_checker or NoOpSemanticLoopChecker()
        self._lock = threading.Lock()

        self._tool_tracker = ToolCallRepetitionTracker(self.config.tool_call)
        self._content_tracker = ContentRepetitionTracker(
            content_loop_threshold=self.config.content_loop_threshold,
            content_chunk_size=self.config.content_chunk_size,
            max_history_length=self.config.max_history_length,
        )

        self._state = DetectionState.FRESH
        self._prompt_id = ""
        self._turns_in_current_prompt = 0
        self._last_loop_kind: LoopKind | None = None
        self._last_repeat_count = 0
        self._loop_events: list[LoopDetectionEvent] = []

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def prompt_id(self) -> str:
        return self._prompt_id

    @property
    def turns_in_current_prompt(self) -> int:
        return self._turns_in_current_prompt

    @property
    def last_loop_kind(self) -> LoopKind | None:
        return self._last_loop_kind

    @property
    def last_repeat_count(self) -> int:
        return self._last_repeat_count

    def reset(self, prompt_id: str) -> None:
        """Clear every tracker and key the session to ``prompt_id``."""
        with self._lock:
            self._prompt_id = prompt_id
            self._tool_tracker.reset()
            self._content_tracker.reset()
            self._turns_in_current_prompt = 0
            self._last_loop_kind = None
            self._last_repeat_count = 0
            self._loop_events.clear()
            self._state = DetectionState.ACTIVE

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Loop detection session reset for prompt %s", prompt_id)

    def add_and_check(self, event: GenerationEvent) -> bool:
        """Feed one stream event; True once a loop is detected for this prompt."""
        with self._lock:
            if self._state is DetectionState.LATCHED:
                return True
            self._state = DetectionState.ACTIVE

            if isinstance(event, ToolCall):
                # Content chanting only happens inside one uninterrupted text
                # stream; a tool call in between breaks adjacency.
                self._content_tracker.reset_tracking(reset_history=False)
                if self.config.tool_call.enabled and self._tool_tracker.check_tool_call(
                    event.tool_name, event.arguments
                ):
                    self._latch(LoopKind.TOOL_CALL, self._tool_tracker.repeat_count)
            elif isinstance(event, ContentDelta):
                if event.text and self._content_tracker.check_content(event.text):
                    self._latch(
                        LoopKind.CONTENT, self._content_tracker.content_loop_threshold
                    )

            return self._state is DetectionState.LATCHED

    async def turn_started(self) -> bool:
        """Count a new turn and run the semantic check for it.

        The checker is awaited outside the lock; its verdict is dropped if the
        session was reset to another prompt in the meantime.
        """
        with self._lock:
            self._turns_in_current_prompt += 1
            prompt_id = self._prompt_id
            turn_count = self._turns_in_current_prompt

        looping = await self._semantic_checker.check(prompt_id, turn_count)
        if not looping:
            return False

        with self._lock:
            if self._prompt_id != prompt_id:
                return False
            if self._state is not DetectionState.LATCHED:
                self._latch(LoopKind.SEMANTIC, turn_count)
        return True

    def is_loop_detected(self) -> bool:
        with self._lock:
            return self._state is DetectionState.LATCHED

    def _latch(self, kind: LoopKind, repeat_count: int) -> None:
        self._state = DetectionState.LATCHED
        self._last_loop_kind = kind
        self._last_repeat_count = repeat_count
        self._loop_events.append(
            LoopDetectionEvent(
                kind=kind,
                prompt_id=self._prompt_id,
                repetition_count=repeat_count,
                turn_count=self._turns_in_current_prompt,
                buffer_content=self._content_tracker.recent_content(),
                timestamp=time.time(),
            )
        )
        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "Loop detection latched for prompt %s: kind=%s repeats=%d",
                self._prompt_id,
                kind.value,
                repeat_count,
            )

    def get_loop_history(self) -> list[LoopDetectionEvent]:
        with self._lock:
            return self._loop_events.copy()

    def get_current_state(self) -> dict[str, Any]:
        with self._lock:
            return {
                "state": self._state.value,
                "prompt_id": self._prompt_id,
                "turns_in_current_prompt": self._turns_in_current_prompt,
                "tool_call_repeat_count": self._tool_tracker.repeat_count,
                "content": self._content_tracker.snapshot(),
                "config": self.config.to_dict(),
            }
