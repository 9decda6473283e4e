"""Conversation lifecycle states and the reentrant auto-scroll guard."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum


class ConversationState(str, Enum):
    """Finite state machine for the active generation lifecycle."""

    IDLE = "IDLE"
    GENERATING = "GENERATING"
    CANCELLED = "CANCELLED"
    ERROR = "ERROR"


class AutoScrollGuard:
    """Counter that suppresses auto-scroll while any flow holds it.

    Flows may nest (a shortcut generation inside a batch update), so the
    guard counts holders instead of storing a flag.
    """

    def __init__(self) -> None:
        self._depth = 0

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def scroll_enabled(self) -> bool:
        return self._depth == 0

    @contextmanager
    def suppressed(self) -> Iterator[None]:
        """Hold the guard for the duration of the block, including error paths."""
        self._depth += 1
        try:
            yield
        finally:
            self._depth = max(0, self._depth - 1)
