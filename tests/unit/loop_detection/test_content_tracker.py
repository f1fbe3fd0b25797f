"""Tests for the sliding-window content repetition tracker."""

import hashlib

import pytest
from session_guard.loop_detection.content_tracker import ContentRepetitionTracker
from session_guard.loop_detection.hasher import chunk_digest

CHANT = "I will try the same approach again right now. "


def _unique_text(seed: int, length: int = 20) -> str:
    return hashlib.sha256(str(seed).encode()).hexdigest()[:length]


def _feed_until_detected(tracker: ContentRepetitionTracker, text: str, times: int):
    for attempt in range(1, times + 1):
        if tracker.check_content(text):
            return attempt
    return None


class TestLoopDetection:
    def test_chanting_is_detected_with_defaults(self) -> None:
        tracker = ContentRepetitionTracker()

        detected_at = _feed_until_detected(tracker, CHANT, 30)

        assert detected_at is not None
        assert detected_at <= 12

    def test_phrase_period_not_dividing_chunk_size_is_detected(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=3, content_chunk_size=10, max_history_length=200
        )

        assert _feed_until_detected(tracker, "abcdefg", 20) is not None

    def test_short_chant_detected_once_enough_history(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=3, content_chunk_size=10, max_history_length=200
        )

        assert tracker.check_content("abcdefghij") is False
        assert tracker.check_content("abcdefghij") is False
        assert tracker.check_content("abcdefghij") is True

    def test_spaced_repeats_never_trigger(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=3, content_chunk_size=10, max_history_length=1000
        )

        for i in range(50):
            assert tracker.check_content("abcdefghij" + _unique_text(i)) is False

    def test_unique_text_never_triggers(self) -> None:
        tracker = ContentRepetitionTracker()

        for i in range(100):
            assert tracker.check_content(_unique_text(i, 64) + " ") is False


class TestStructureHandling:
    def test_repeats_inside_code_block_are_ignored(self) -> None:
        tracker = ContentRepetitionTracker()

        assert tracker.check_content("```python\n") is False
        assert tracker.in_code_block is True
        for _ in range(20):
            assert tracker.check_content(CHANT) is False
        assert tracker.stream_content_history == ""

    def test_detection_resumes_after_code_block_closes(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=3, content_chunk_size=10, max_history_length=200
        )

        tracker.check_content("```\n")
        for _ in range(5):
            assert tracker.check_content("abcdefghij") is False
        assert tracker.check_content("```\n") is False
        assert tracker.in_code_block is False

        assert _feed_until_detected(tracker, "abcdefghij", 5) is not None

    def test_fence_pair_in_one_fragment_does_not_enter_code_block(self) -> None:
        tracker = ContentRepetitionTracker()

        tracker.check_content("```\nprint(1)\n```\n")

        assert tracker.in_code_block is False

    def test_divider_is_not_recorded(self) -> None:
        tracker = ContentRepetitionTracker()
        tracker.check_content("plain words ")

        assert tracker.check_content("-----") is False
        assert tracker.stream_content_history == "plain words "

    def test_structure_clears_index_but_keeps_history(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=5, content_chunk_size=10, max_history_length=200
        )
        tracker.check_content("abcdefghijklmnopqrstuvwxyz")
        assert tracker.content_stats

        tracker.reset_tracking(reset_history=False)

        assert tracker.content_stats == {}
        assert tracker.last_content_index == 0
        assert tracker.stream_content_history == "abcdefghijklmnopqrstuvwxyz"

    def test_reset_leaves_code_block(self) -> None:
        tracker = ContentRepetitionTracker()
        tracker.check_content("```\n")

        tracker.reset()

        assert tracker.in_code_block is False
        assert tracker.stream_content_history == ""
        assert tracker.content_stats == {}


class TestHistoryTruncation:
    def test_history_is_bounded(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=5, content_chunk_size=10, max_history_length=40
        )

        for i in range(20):
            tracker.check_content(_unique_text(i))

        assert len(tracker.stream_content_history) == 40

    def test_offsets_still_point_at_their_chunks(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=5, content_chunk_size=10, max_history_length=40
        )

        for i in range(20):
            tracker.check_content(_unique_text(i))

        history = tracker.stream_content_history
        assert tracker.last_content_index <= len(history)
        for digest, offsets in tracker.content_stats.items():
            for offset in offsets:
                assert 0 <= offset <= len(history) - 10
                assert chunk_digest(history[offset : offset + 10]) == digest

    def test_detection_survives_truncation(self) -> None:
        tracker = ContentRepetitionTracker(
            content_loop_threshold=3, content_chunk_size=10, max_history_length=40
        )
        for i in range(10):
            tracker.check_content(_unique_text(i))

        assert _feed_until_detected(tracker, "abcdefghij", 5) is not None


class TestCollisionVerification:
    @pytest.fixture
    def colliding_tracker(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "session_guard.loop_detection.content_tracker.chunk_digest",
            lambda text: "collision",
        )
        return ContentRepetitionTracker(
            content_loop_threshold=2, content_chunk_size=10, max_history_length=200
        )

    def test_digest_match_with_different_text_is_not_counted(
        self, colliding_tracker: ContentRepetitionTracker
    ) -> None:
        assert colliding_tracker.check_content("0123456789") is False
        assert colliding_tracker.check_content("abcdefghij") is False

        assert colliding_tracker.content_stats == {"collision": [0]}

    def test_real_match_is_counted_after_collisions(
        self, colliding_tracker: ContentRepetitionTracker
    ) -> None:
        colliding_tracker.check_content("0123456789")
        colliding_tracker.check_content("abcdefghij")
        colliding_tracker.check_content("0123456789")

        assert colliding_tracker.content_stats == {"collision": [0, 20]}


class TestDiagnostics:
    def test_snapshot(self) -> None:
        tracker = ContentRepetitionTracker(content_chunk_size=10)
        tracker.check_content("abcdefghijkl")

        snapshot = tracker.snapshot()

        assert snapshot == {
            "history_length": 12,
            "last_content_index": 3,
            "tracked_chunks": 3,
            "in_code_block": False,
        }

    def test_recent_content(self) -> None:
        tracker = ContentRepetitionTracker()
        tracker.check_content("x" * 300)

        assert tracker.recent_content() == "x" * 200
        assert tracker.recent_content(5) == "xxxxx"
