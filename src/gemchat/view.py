"""Rendering seam between the conversational core and any front-end."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .gateway import Source
from .state import AutoScrollGuard


class MessageKind(str, Enum):
    """Kinds of lines the front-end renders."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM_QUESTION = "system-question"
    STATUS = "status"
    ERROR = "error"


@dataclass(frozen=True)
class DisplayMessage:
    """A rendered line; status lines never reach the transcript store."""

    kind: MessageKind
    text: str
    sources: tuple[Source, ...] = ()


class ChatView(Protocol):
    """Front-end callbacks used by the core."""

    def render_message(self, message: DisplayMessage, *, scroll: bool) -> None: ...

    def render_media(self, kind: str, data: str, mime_type: str, *, scroll: bool) -> None: ...

    def set_thinking(self, visible: bool) -> None: ...

    def set_generating(self, generating: bool) -> None: ...

    def clear(self) -> None: ...


class NullView:
    """View that renders nothing, for headless use."""

    def render_message(self, message: DisplayMessage, *, scroll: bool) -> None:
        pass

    def render_media(self, kind: str, data: str, mime_type: str, *, scroll: bool) -> None:
        pass

    def set_thinking(self, visible: bool) -> None:
        pass

    def set_generating(self, generating: bool) -> None:
        pass

    def clear(self) -> None:
        pass


class ChatOutput:
    """Forward core output to a view, honouring the auto-scroll guard."""

    def __init__(self, view: ChatView | None = None, guard: AutoScrollGuard | None = None) -> None:
        self.view: ChatView = view or NullView()
        self.scroll_guard = guard or AutoScrollGuard()

    def _emit(self, kind: MessageKind, text: str, sources: tuple[Source, ...] = ()) -> None:
        self.view.render_message(
            DisplayMessage(kind=kind, text=text, sources=sources),
            scroll=self.scroll_guard.scroll_enabled,
        )

    def user(self, text: str) -> None:
        self._emit(MessageKind.USER, text)

    def system_question(self, text: str) -> None:
        self._emit(MessageKind.SYSTEM_QUESTION, text)

    def assistant(self, text: str, sources: tuple[Source, ...] = ()) -> None:
        self._emit(MessageKind.ASSISTANT, text, sources)

    def status(self, text: str) -> None:
        self._emit(MessageKind.STATUS, text)

    def error(self, text: str) -> None:
        self._emit(MessageKind.ERROR, text)

    def media(self, kind: str, data: str, mime_type: str) -> None:
        self.view.render_media(kind, data, mime_type, scroll=self.scroll_guard.scroll_enabled)

    def thinking(self, visible: bool) -> None:
        self.view.set_thinking(visible)

    def generating(self, active: bool) -> None:
        self.view.set_generating(active)

    def clear(self) -> None:
        self.view.clear()
