"""Configuration for tool call loop detection."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import Any

TOOL_CALL_LOOP_THRESHOLD = 5


@dataclass
class ToolCallLoopConfig:
    """Configuration for tool call loop detection."""

    # Whether tool call loop detection is enabled
    enabled: bool = True

    # Consecutive identical tool calls that count as a loop
    max_repeats: int = TOOL_CALL_LOOP_THRESHOLD

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.max_repeats < 2:
            errors.append("max_repeats must be at least 2")

        return errors

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> ToolCallLoopConfig:
        """Create a configuration from a dictionary.

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            A ToolCallLoopConfig instance
        """
        config = cls()

        if "enabled" in config_dict:
            config.enabled = bool(config_dict["enabled"])

        if "max_repeats" in config_dict:
            with contextlib.suppress(ValueError, TypeError):
                config.max_repeats = int(config_dict["max_repeats"])

        return config

    def to_dict(self) -> dict[str, bool | int]:
        return {
            "enabled": self.enabled,
            "max_repeats": self.max_repeats,
        }
