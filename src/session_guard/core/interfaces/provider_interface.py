from __future__ import annotations

import abc
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from session_guard.core.domain.events import GenerationEvent


class IGenerationProvider(abc.ABC):
    """
    A model provider adapter producing normalized generation events.

    Wire formats, authentication and routing live behind this interface.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abc.abstractmethod
    def stream_generate(self, request: Any) -> AsyncIterator[GenerationEvent]:
        """
        Starts one generation call.

        Args:
            request: Provider specific request payload.

        Returns:
            An async iterator yielding events in provider order.
        """
        raise NotImplementedError
