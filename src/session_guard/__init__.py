"""
session-guard
=============
Turn budgets and loop detection for streamed language model conversations.
"""

from session_guard.core.common.logging_utils import configure_logging
from session_guard.core.config.app_config import SessionGuardConfig, load_config
from session_guard.core.domain.events import (
    ContentDelta,
    ErrorEvent,
    EventType,
    Finished,
    GenerationEvent,
    LoopDetected,
    LoopKind,
    MaxSessionTurnsReached,
    ToolCall,
)
from session_guard.core.services.stream_session_controller import (
    StreamSessionController,
)
from session_guard.loop_detection.session import LoopDetectionSession

__all__ = [
    "ContentDelta",
    "ErrorEvent",
    "EventType",
    "Finished",
    "GenerationEvent",
    "LoopDetected",
    "LoopDetectionSession",
    "LoopKind",
    "MaxSessionTurnsReached",
    "SessionGuardConfig",
    "StreamSessionController",
    "ToolCall",
    "configure_logging",
    "load_config",
]
__version__ = "0.1.0"
