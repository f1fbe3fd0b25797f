"""
Stream session controller.

Wraps one provider's generation stream with the session guards: a per-prompt
turn budget and loop detection. Provider events are consumed on a dedicated
task and republished through a bounded queue, so a slow consumer applies
backpressure to the provider instead of losing events. When a guard trips, a
terminal control event is emitted in place of the rest of the stream.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass
from typing import Any

from session_guard.core.common.logging_utils import get_logger
from session_guard.core.config.app_config import SessionGuardConfig
from session_guard.core.domain.events import (
    ErrorEvent,
    GenerationEvent,
    LoopDetected,
    LoopKind,
    MaxSessionTurnsReached,
    ToolCall,
)
from session_guard.core.interfaces.loop_detector_interface import (
    ILoopDetectionSession,
    ISemanticLoopChecker,
)
from session_guard.core.interfaces.model_bases import InternalDTO
from session_guard.core.interfaces.provider_interface import IGenerationProvider
from session_guard.loop_detection.session import LoopDetectionSession

logger = logging.getLogger(__name__)

_LOOP_DESCRIPTIONS = {
    LoopKind.TOOL_CALL: "Tool call loop detected",
    LoopKind.CONTENT: "Content repetition loop detected",
    LoopKind.SEMANTIC: "Semantic loop detected at turn start",
}


@dataclass
class SessionCounters(InternalDTO):
    """Turn budget bookkeeping, independent of the loop session's own counter."""

    last_prompt_id: str | None = None
    turns_since_reset: int = 0


class _EndOfStream:
    pass


_END = _EndOfStream()


@dataclass
class _StreamFailure:
    exc: BaseException


async def _next_or_end(stream: AsyncIterator[GenerationEvent]) -> Any:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return _END


async def _until_cancelled(
    awaitable: Awaitable[Any], cancel_event: asyncio.Event | None
) -> tuple[bool, Any]:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Returns:
        (True, result) when the awaitable completed, (False, None) otherwise
    """
    if cancel_event is None:
        return True, await awaitable

    if cancel_event.is_set():
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        return False, None

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        waiter.cancel()
        await _abandon(task)
        raise
    waiter.cancel()

    if task in done:
        return True, task.result()

    await _abandon(task)
    return False, None


async def _abandon(task: asyncio.Future[Any]) -> None:
    """Cancel ``task`` and wait until it has really stopped.

    The provider stream must not be running when it is closed afterwards.
    """
    task.cancel()
    try:
        await asyncio.wait({task})
    except asyncio.CancelledError:
        await asyncio.wait({task})
        raise
    if not task.cancelled() and task.exception() is not None:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Discarding result of cancelled stream operation: %r",
                task.exception(),
            )


class StreamSessionController:
    """Applies the turn budget and loop detection to generation streams.

    One controller guards one conversation at a time; its loop session is
    reset whenever a call arrives with a new prompt id.
    """

    def __init__(
        self,
        provider: IGenerationProvider,
        config: SessionGuardConfig | None = None,
        loop_session: ILoopDetectionSession | None = None,
        semantic_checker: ISemanticLoopChecker | None = None,
    ) -> None:
        self.config = config or SessionGuardConfig()
        self._provider = provider
        self._loop_session = loop_session or LoopDetectionSession(
            self.config.to_loop_detection_config(),
            semantic_checker=semantic_checker,
        )
        self._counters = SessionCounters()
        self._log = get_logger(__name__)

    @property
    def loop_session(self) -> ILoopDetectionSession:
        return self._loop_session

    @property
    def last_prompt_id(self) -> str | None:
        return self._counters.last_prompt_id

    @property
    def session_turn_count(self) -> int:
        return self._counters.turns_since_reset

    async def send_message_stream(
        self,
        request: Any,
        prompt_id: str,
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        """Run one generation call and yield its guarded event stream.

        Args:
            request: Provider specific request payload
            prompt_id: Identity of the conversation this call belongs to
            cancel_event: Optional signal that stops consumption cooperatively

        Yields:
            Provider events in order, possibly ending with a terminal
            ``LoopDetected`` or ``MaxSessionTurnsReached`` event

        Raises:
            Exception: Whatever the provider stream raised, after the events
                it produced before failing
        """
        queue: asyncio.Queue[Any] = asyncio.Queue(
            maxsize=self.config.outbound_queue_size
        )
        producer = asyncio.create_task(
            self._pump(request, prompt_id, queue, cancel_event)
        )
        try:
            while True:
                completed, item = await _until_cancelled(queue.get(), cancel_event)
                if not completed or item is _END:
                    break
                if isinstance(item, _StreamFailure):
                    raise item.exc
                if cancel_event is not None and cancel_event.is_set():
                    break
                yield item
        finally:
            if not producer.done():
                producer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await producer

    async def _pump(
        self,
        request: Any,
        prompt_id: str,
        queue: asyncio.Queue[Any],
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Move guarded events into the outbound queue."""
        try:
            async with contextlib.aclosing(
                self._guarded_events(request, prompt_id, cancel_event)
            ) as events:
                async for event in events:
                    delivered, _ = await _until_cancelled(queue.put(event), cancel_event)
                    if not delivered:
                        return
        except Exception as exc:
            logger.error(
                "Provider stream failed for prompt %s: %s", prompt_id, exc, exc_info=True
            )
            await _until_cancelled(queue.put(_StreamFailure(exc)), cancel_event)
            return

        await _until_cancelled(queue.put(_END), cancel_event)

    async def _guarded_events(
        self,
        request: Any,
        prompt_id: str,
        cancel_event: asyncio.Event | None,
    ) -> AsyncIterator[GenerationEvent]:
        detection_enabled = self.config.loop_detection_enabled

        if self._counters.last_prompt_id != prompt_id:
            if detection_enabled:
                self._loop_session.reset(prompt_id)
            self._counters.last_prompt_id = prompt_id
            self._counters.turns_since_reset = 0

        self._counters.turns_since_reset += 1
        turn_count = self._counters.turns_since_reset

        max_turns = self.config.max_session_turns
        if max_turns > 0 and turn_count > max_turns:
            self._log.warning(
                "max_session_turns_reached",
                prompt_id=prompt_id,
                current_turns=turn_count,
                max_turns=max_turns,
            )
            yield MaxSessionTurnsReached(
                current_turns=turn_count,
                max_turns=max_turns,
                prompt_id=prompt_id,
                provider=self._provider.name,
            )
            return

        if detection_enabled and await self._loop_session.turn_started():
            yield self._loop_event(LoopKind.SEMANTIC, prompt_id, turn_count)
            return

        stream = self._provider.stream_generate(request)
        try:
            while True:
                completed, event = await _until_cancelled(
                    _next_or_end(stream), cancel_event
                )
                if not completed:
                    if logger.isEnabledFor(logging.INFO):
                        logger.info("Stream for prompt %s cancelled", prompt_id)
                    return
                if event is _END:
                    return

                if detection_enabled and self._loop_session.add_and_check(event):
                    kind = (
                        LoopKind.TOOL_CALL
                        if isinstance(event, ToolCall)
                        else LoopKind.CONTENT
                    )
                    yield self._loop_event(
                        kind, prompt_id, turn_count, template=event
                    )
                    return

                yield event

                if isinstance(event, ErrorEvent):
                    return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    def _loop_event(
        self,
        kind: LoopKind,
        prompt_id: str,
        turn_count: int,
        template: GenerationEvent | None = None,
    ) -> LoopDetected:
        repeat_count = self._loop_session.last_repeat_count
        self._log.warning(
            "loop_detected",
            prompt_id=prompt_id,
            kind=kind.value,
            turn_count=turn_count,
            repeat_count=repeat_count,
        )
        return LoopDetected(
            kind=kind,
            prompt_id=prompt_id,
            description=_LOOP_DESCRIPTIONS[kind],
            turn_count=turn_count,
            repeat_count=repeat_count,
            provider=template.provider if template else self._provider.name,
            model=template.model if template else None,
            request_id=template.request_id if template else None,
        )
