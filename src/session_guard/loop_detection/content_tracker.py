"""
Content repetition tracking for streamed model output.

The tracker keeps a bounded rolling history of streamed text and slides a
fixed-size window over it one character at a time. Every window position is
hashed; a loop is reported when the same window recurs ``content_loop_threshold``
times and those occurrences sit almost back to back (average spacing of at most
1.5 chunk sizes). Sliding by one character means a repeating phrase whose period
does not divide the chunk size is still caught.

Markdown structure (tables, lists, headings, quotes, dividers, fenced code)
repeats its own syntax legitimately, so the chunk index is cleared whenever a
fragment carries structural markers, and fenced code is not analysed at all.
"""

from __future__ import annotations

import logging
from typing import Any

from session_guard.loop_detection.config import (
    CONTENT_CHUNK_SIZE,
    CONTENT_LOOP_THRESHOLD,
    MAX_HISTORY_LENGTH,
)
from session_guard.loop_detection.hasher import chunk_digest
from session_guard.loop_detection.patterns import classify_structure

logger = logging.getLogger(__name__)

# Average distance between clustered repeats, in chunk sizes
MAX_AVERAGE_DISTANCE_FACTOR = 1.5


class ContentRepetitionTracker:
    """Detects chanting of identical text in a stream of content deltas."""

    def __init__(
        self,
        content_loop_threshold: int = CONTENT_LOOP_THRESHOLD,
        content_chunk_size: int = CONTENT_CHUNK_SIZE,
        max_history_length: int = MAX_HISTORY_LENGTH,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            content_loop_threshold: Clustered chunk repetitions that count as a loop
            content_chunk_size: Size of the compared window in characters
            max_history_length: Maximum characters of history kept in memory
        """
        self.content_loop_threshold = content_loop_threshold
        self.content_chunk_size = content_chunk_size
        self.max_history_length = max_history_length

        self.stream_content_history = ""
        # chunk digest -> chunk start offsets into stream_content_history
        self.content_stats: dict[str, list[int]] = {}
        self.last_content_index = 0
        self.in_code_block = False

    def check_content(self, content: str) -> bool:
        """
        Feed one content fragment and report whether it completes a loop.

        Args:
            content: New content delta, in arrival order

        Returns:
            True if a loop is detected, False otherwise
        """
        markers = classify_structure(content)

        if markers.has_structure:
            self.reset_tracking(reset_history=False)

        was_in_code_block = self.in_code_block
        if markers.toggles_code_block:
            self.in_code_block = not self.in_code_block

        if was_in_code_block or self.in_code_block or markers.is_divider:
            return False

        self.stream_content_history += content
        self._truncate_and_update()
        return self._analyze_content_chunks_for_loop()

    def _truncate_and_update(self) -> None:
        """
        Drop the oldest history beyond ``max_history_length`` and shift every
        stored offset so it still points at the same text.
        """
        if len(self.stream_content_history) <= self.max_history_length:
            return

        truncation_amount = len(self.stream_content_history) - self.max_history_length
        self.stream_content_history = self.stream_content_history[truncation_amount:]
        self.last_content_index = max(0, self.last_content_index - truncation_amount)

        for hash_val, old_indices in list(self.content_stats.items()):
            adjusted_indices = [
                idx - truncation_amount
                for idx in old_indices
                if idx >= truncation_amount
            ]

            if adjusted_indices:
                self.content_stats[hash_val] = adjusted_indices
            else:
                del self.content_stats[hash_val]

    def _analyze_content_chunks_for_loop(self) -> bool:
        while self._has_more_chunks_to_process():
            current_chunk = self.stream_content_history[
                self.last_content_index : self.last_content_index
                + self.content_chunk_size
            ]
            hash_val = chunk_digest(current_chunk)

            if self._is_loop_detected_for_chunk(current_chunk, hash_val):
                if logger.isEnabledFor(logging.WARNING):
                    logger.warning(
                        "Content loop detected: chunk repeated %d times within short distance",
                        self.content_loop_threshold,
                    )
                return True

            self.last_content_index += 1

        return False

    def _has_more_chunks_to_process(self) -> bool:
        return self.last_content_index + self.content_chunk_size <= len(
            self.stream_content_history
        )

    def _is_loop_detected_for_chunk(self, chunk: str, hash_val: str) -> bool:
        """
        Record the chunk at the current offset and test its occurrences for
        clustering.

        Args:
            chunk: Current content chunk
            hash_val: Digest of the chunk

        Returns:
            True if a loop is detected for this chunk, False otherwise
        """
        existing_indices = self.content_stats.get(hash_val)

        if existing_indices is None:
            self.content_stats[hash_val] = [self.last_content_index]
            return False

        # A digest match is only trusted once the text itself matches
        if not self._is_actual_content_match(chunk, existing_indices[0]):
            return False

        existing_indices.append(self.last_content_index)

        if len(existing_indices) < self.content_loop_threshold:
            return False

        recent_indices = existing_indices[-self.content_loop_threshold :]
        total_distance = recent_indices[-1] - recent_indices[0]
        average_distance = total_distance / (self.content_loop_threshold - 1)
        max_allowed_distance = self.content_chunk_size * MAX_AVERAGE_DISTANCE_FACTOR

        return average_distance <= max_allowed_distance

    def _is_actual_content_match(self, current_chunk: str, original_index: int) -> bool:
        end = original_index + self.content_chunk_size
        if end > len(self.stream_content_history):
            return False
        return self.stream_content_history[original_index:end] == current_chunk

    def reset_tracking(self, reset_history: bool = True) -> None:
        """
        Clear the chunk index and scan cursor.

        Args:
            reset_history: If True, also clears the content history
        """
        if reset_history:
            self.stream_content_history = ""
        self.content_stats = {}
        self.last_content_index = 0

    def reset(self) -> None:
        """Return to the initial state, outside any code block."""
        self.reset_tracking(reset_history=True)
        self.in_code_block = False

    def snapshot(self) -> dict[str, Any]:
        """Diagnostic view of the tracker state."""
        return {
            "history_length": len(self.stream_content_history),
            "last_content_index": self.last_content_index,
            "tracked_chunks": len(self.content_stats),
            "in_code_block": self.in_code_block,
        }

    def recent_content(self, length: int = 200) -> str:
        return self.stream_content_history[-length:]
