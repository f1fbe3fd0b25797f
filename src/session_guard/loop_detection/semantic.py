"""Turn-boundary loop checks.

Loops that span turns (the model re-planning the same failed approach in
different words) cannot be seen by hashing. The session consults an
``ISemanticLoopChecker`` at every turn start; the default never reports one.
"""

from __future__ import annotations

import logging

from session_guard.core.interfaces.loop_detector_interface import (
    ISemanticLoopChecker,
)

logger = logging.getLogger(__name__)


class NoOpSemanticLoopChecker(ISemanticLoopChecker):
    """Semantic checker that never detects a loop."""

    async def check(self, prompt_id: str, turn_count: int) -> bool:
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Semantic loop check skipped for prompt %s at turn %d",
                prompt_id,
                turn_count,
            )
        return False
