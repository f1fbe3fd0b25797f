"""Tool call repetition tracking.

A tool call loop is the same tool invoked with identical arguments several
times in a row. Only the most recent signature is remembered; any different
call breaks the streak.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from session_guard.core.interfaces.model_bases import InternalDTO
from session_guard.loop_detection.hasher import canonical_arguments, signature_of
from session_guard.tool_call_loop.config import ToolCallLoopConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCallSignature(InternalDTO):
    """A tool call reduced to its name and canonical arguments."""

    tool_name: str
    arguments_signature: str
    digest: str

    @classmethod
    def from_tool_call(
        cls, tool_name: str, arguments: Mapping[str, Any] | str | None
    ) -> ToolCallSignature | None:
        """Create a signature from a tool call.

        Args:
            tool_name: Name of the tool being called
            arguments: Mapping or JSON string of the tool arguments

        Returns:
            The signature, or None when the arguments cannot be serialized
        """
        canonical = canonical_arguments(arguments)
        digest = signature_of(tool_name, arguments)
        if canonical is None or digest is None:
            return None
        return cls(tool_name=tool_name, arguments_signature=canonical, digest=digest)

    def get_full_signature(self) -> str:
        """Get the full signature string (tool_name + arguments)."""
        return f"{self.tool_name}:{self.arguments_signature}"


class ToolCallRepetitionTracker:
    """Counts consecutive repeats of the most recent tool call signature."""

    def __init__(self, config: ToolCallLoopConfig | None = None) -> None:
        self.config = config or ToolCallLoopConfig()
        self.last_signature: str | None = None
        self.repeat_count = 0

    @property
    def threshold(self) -> int:
        return self.config.max_repeats

    def check_tool_call(
        self, tool_name: str, arguments: Mapping[str, Any] | str | None
    ) -> bool:
        """Record a tool call and report whether it completes a loop.

        The counter keeps climbing past the threshold, so every further repeat
        also reports True.

        Args:
            tool_name: Name of the tool being called
            arguments: Mapping or JSON string of the tool arguments

        Returns:
            True if the call has been repeated at least ``threshold`` times
        """
        signature = signature_of(tool_name, arguments)
        if signature is None:
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Skipping tool call '%s': arguments have no canonical form",
                    tool_name,
                )
            return False

        if signature == self.last_signature:
            self.repeat_count += 1
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Repeated tool call: %s (count: %d)", tool_name, self.repeat_count
                )
        else:
            self.last_signature = signature
            self.repeat_count = 1

        if self.repeat_count >= self.threshold:
            if logger.isEnabledFor(logging.WARNING):
                logger.warning(
                    "Tool call loop detected: '%s' repeated %d times with identical arguments",
                    tool_name,
                    self.repeat_count,
                )
            return True

        return False

    def reset(self) -> None:
        """Forget the last signature and its streak."""
        self.last_signature = None
        self.repeat_count = 0
