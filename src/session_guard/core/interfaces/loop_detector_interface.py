from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from session_guard.core.domain.events import GenerationEvent, LoopKind
    from session_guard.loop_detection.event import LoopDetectionEvent


class ILoopDetectionSession(abc.ABC):
    """
    Interface for the per-conversation loop detection state consulted by the
    stream session controller.
    """

    @abc.abstractmethod
    def reset(self, prompt_id: str) -> None:
        """
        Clears all detection state and keys the session to a new prompt.

        Args:
            prompt_id: Identity of the conversation the state now belongs to.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def add_and_check(self, event: GenerationEvent) -> bool:
        """
        Feeds one generation event to the detectors.

        Args:
            event: The event observed on the provider stream.

        Returns:
            True if a loop has been detected for the current prompt.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def turn_started(self) -> bool:
        """
        Signals the start of a new turn within the current prompt.

        Returns:
            True if a loop was detected at the turn boundary.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def is_loop_detected(self) -> bool:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def last_loop_kind(self) -> LoopKind | None:
        """Kind of the loop that latched the session, if any."""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def last_repeat_count(self) -> int:
        """Repetitions observed when the session latched."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_loop_history(self) -> list[LoopDetectionEvent]:
        raise NotImplementedError

    @abc.abstractmethod
    def get_current_state(self) -> dict[str, Any]:
        raise NotImplementedError


class ISemanticLoopChecker(abc.ABC):
    """
    Strategy consulted at every turn boundary for loops that only a judgment
    over the whole conversation can reveal.
    """

    @abc.abstractmethod
    async def check(self, prompt_id: str, turn_count: int) -> bool:
        """
        Args:
            prompt_id: The conversation being checked.
            turn_count: Turns started so far within the prompt.

        Returns:
            True if the conversation is judged to be looping.
        """
        raise NotImplementedError
