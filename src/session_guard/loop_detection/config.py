"""
Configuration for the loop detection session.

Defaults reproduce the thresholds the chunk-hash algorithm was tuned with:
10 clustered repeats of a 50 character window inside a 1000 character history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from session_guard.core.interfaces.model_bases import InternalDTO
from session_guard.tool_call_loop.config import ToolCallLoopConfig

CONTENT_LOOP_THRESHOLD = 10
CONTENT_CHUNK_SIZE = 50
MAX_HISTORY_LENGTH = 1000


@dataclass
class LoopDetectionConfig(InternalDTO):
    """Configuration for loop detection functionality."""

    # Number of clustered identical chunks that count as a content loop
    content_loop_threshold: int = CONTENT_LOOP_THRESHOLD
    # Size of the window hashed and compared at every offset
    content_chunk_size: int = CONTENT_CHUNK_SIZE
    # Characters of recent content kept for analysis
    max_history_length: int = MAX_HISTORY_LENGTH

    tool_call: ToolCallLoopConfig = field(default_factory=ToolCallLoopConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> LoopDetectionConfig:
        """Create configuration from dictionary."""
        config = cls()

        if "content_loop_threshold" in config_dict:
            config.content_loop_threshold = int(config_dict["content_loop_threshold"])
        if "content_chunk_size" in config_dict:
            config.content_chunk_size = int(config_dict["content_chunk_size"])
        if "max_history_length" in config_dict:
            config.max_history_length = int(config_dict["max_history_length"])

        tool_call = config_dict.get("tool_call")
        if isinstance(tool_call, dict):
            config.tool_call = ToolCallLoopConfig.from_dict(tool_call)
        elif "tool_call_loop_threshold" in config_dict:
            config.tool_call.max_repeats = int(config_dict["tool_call_loop_threshold"])

        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "content_loop_threshold": self.content_loop_threshold,
            "content_chunk_size": self.content_chunk_size,
            "max_history_length": self.max_history_length,
            "tool_call": self.tool_call.to_dict(),
        }

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.content_loop_threshold < 2:
            errors.append("content_loop_threshold must be at least 2")

        if self.content_chunk_size < 1:
            errors.append("content_chunk_size must be positive")

        if self.max_history_length < self.content_chunk_size:
            errors.append("max_history_length must be at least content_chunk_size")

        errors.extend(f"tool_call.{error}" for error in self.tool_call.validate())

        return errors
