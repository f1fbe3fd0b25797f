"""
Loop detection for streamed model output.

This package detects when a model repeats the same tool call or chants the
same text, so the stream carrying that output can be stopped.
"""

from .config import (
    CONTENT_CHUNK_SIZE,
    CONTENT_LOOP_THRESHOLD,
    MAX_HISTORY_LENGTH,
    LoopDetectionConfig,
)

__all__ = [
    "CONTENT_CHUNK_SIZE",
    "CONTENT_LOOP_THRESHOLD",
    "MAX_HISTORY_LENGTH",
    "LoopDetectionConfig",
]
