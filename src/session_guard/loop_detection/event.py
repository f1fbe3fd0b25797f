"""
Loop detection records.

A LoopDetectionEvent is kept in the session's loop history each time the
session latches, independently of the stream event the controller emits.
"""

from __future__ import annotations

from dataclasses import dataclass

from session_guard.core.domain.events import LoopKind
from session_guard.core.interfaces.model_bases import InternalDTO


@dataclass
class LoopDetectionEvent(InternalDTO):
    """Event triggered when a loop is detected."""

    kind: LoopKind
    prompt_id: str
    repetition_count: int
    turn_count: int
    buffer_content: str
    timestamp: float
