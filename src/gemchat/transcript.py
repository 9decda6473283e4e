"""Ordered, role-tagged conversation transcript used for display and prompts."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
import json
from typing import Any

MutationListener = Callable[[], None]


class Role(str, Enum):
    """Roles persisted into the prompt-facing transcript."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TranscriptMessage:
    """A single transcript entry; never mutated once appended."""

    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class TranscriptStore:
    """Manage conversation history with bounds and synchronous change listeners.

    Status lines are not stored here. System-questions (text a background
    shortcut sent to the backend) are stored with the user role.
    """

    def __init__(self, max_history_messages: int = 500) -> None:
        self.max_history_messages = max(1, max_history_messages)
        self._messages: list[TranscriptMessage] = []
        self._listeners: list[MutationListener] = []

    def subscribe(self, listener: MutationListener) -> None:
        """Register a callback invoked synchronously after every mutation."""
        self._listeners.append(listener)

    @property
    def messages(self) -> tuple[TranscriptMessage, ...]:
        """Return an immutable snapshot of all messages in chronological order."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def recent(self, limit: int) -> list[TranscriptMessage]:
        """Return the newest ``limit`` messages, oldest first."""
        if limit <= 0:
            return []
        return self._messages[-limit:]

    def append(self, role: Role | str, content: str) -> TranscriptMessage | None:
        """Append a normalized message and enforce storage bounds."""
        normalized_role = Role(role.strip().lower() if isinstance(role, str) else role)
        normalized_content = content.strip()
        if not normalized_content:
            return None
        message = TranscriptMessage(role=normalized_role, content=normalized_content)
        self._messages.append(message)
        self._trim_by_history_limit()
        self._notify()
        return message

    def append_user(self, content: str) -> TranscriptMessage | None:
        return self.append(Role.USER, content)

    def append_assistant(self, content: str) -> TranscriptMessage | None:
        return self.append(Role.ASSISTANT, content)

    def replace(self, messages: Iterable[TranscriptMessage | dict[str, Any]]) -> None:
        """Replace the whole history, e.g. with a compacted summary."""
        normalized: list[TranscriptMessage] = []
        for item in messages:
            if isinstance(item, TranscriptMessage):
                normalized.append(item)
                continue
            role = str(item.get("role", "")).strip().lower()
            content = str(item.get("content", "")).strip()
            if role in {r.value for r in Role} and content:
                normalized.append(TranscriptMessage(role=Role(role), content=content))
        self._messages = normalized
        self._trim_by_history_limit()
        self._notify()

    def clear(self) -> None:
        """Remove every message."""
        self._messages = []
        self._notify()

    def last_assistant(self) -> TranscriptMessage | None:
        """Return the most recent assistant message (reverse chronological scan)."""
        for message in reversed(self._messages):
            if message.role is Role.ASSISTANT and message.content:
                return message
        return None

    def export_json(self) -> str:
        """Export current history using stable list and field ordering."""
        return json.dumps(
            [message.as_dict() for message in self._messages],
            ensure_ascii=False,
            separators=(",", ":"),
        )

    def _trim_by_history_limit(self) -> None:
        if len(self._messages) > self.max_history_messages:
            self._messages = self._messages[-self.max_history_messages :]

    def _notify(self) -> None:
        for listener in self._listeners:
            listener()
