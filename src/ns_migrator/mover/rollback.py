"""
Compensating actions for partially completed operations.

Each step that writes metadata pushes the action that undoes it.  On
failure the actions run newest-first; a compensation that fails is logged
and the rest still run.  Every registered action must be idempotent, so
running the stack a second time changes nothing.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

__all__ = ["CompensationStack"]

logger = logging.getLogger(__name__)


class CompensationStack:
    def __init__(self) -> None:
        self._actions: list[tuple[str, Callable[[], Any]]] = []

    def push(self, description: str, action: Callable[[], Any]) -> None:
        self._actions.append((description, action))

    def __len__(self) -> int:
        return len(self._actions)

    def rollback(self) -> list[str]:
        """Run every action in reverse order.

        Returns:
            Descriptions of the actions that failed (empty on full success).
        """
        if not self._actions:
            return []
        logger.info("ROLLBACK: Undoing %d step(s)...", len(self._actions))
        failed: list[str] = []
        for description, action in reversed(self._actions):
            try:
                action()
                logger.info("      ROLLBACK: %s", description)
            except Exception as exc:  # noqa: BLE001 - one failed compensation must not stop the rest
                logger.error("      ROLLBACK: FAILED to %s: %s", description, exc)
                failed.append(description)
        return failed
