"""Composition root of the conversational core.

``ChatController`` wires the transcript, history cache, session manager,
settings, autocomplete, and dispatcher together and exposes the narrow
surface a front-end needs.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import copy
import logging
import time
from typing import Any

from .autocomplete import (
    AutocompleteEngine,
    AutocompleteState,
    KeyOutcome,
    choose,
    handle_key,
    update_input,
)
from .config import DEFAULT_CONFIG
from .dispatcher import Attachment, DispatchOptions, MessageDispatcher
from .history_cache import HistoryContextCache
from .locale import LocaleContext
from .session import GenerationSessionManager
from .settings import ChatSettings
from .slash_commands import SlashCommandNode, SlashCommandRegistry
from .state import AutoScrollGuard
from .task_manager import TaskManager
from .transcript import TranscriptMessage, TranscriptStore
from .view import ChatOutput, ChatView

LOGGER = logging.getLogger(__name__)


class ChatController:
    """Front-end facing API of the chat session."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        bridge: Any = None,
        view: ChatView | None = None,
        task_manager: TaskManager | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = copy.deepcopy(config) if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        app_config = self.config.get("app", {})
        history_config = self.config.get("history", {})

        self.locale = LocaleContext()
        self.locale.set_language(app_config.get("language"))
        self.locale.set_tone(app_config.get("tone"))
        self.bridge = bridge
        self.task_manager = task_manager or TaskManager()
        self.output = ChatOutput(view)
        self.store = TranscriptStore()
        self.history = HistoryContextCache(
            self.store,
            self.locale,
            ttl_ms=int(history_config.get("cache_ttl_ms", 500)),
            max_chars=int(history_config.get("max_chars", 6000)),
            max_messages=int(history_config.get("max_messages", 12)),
            clock=clock,
        )
        self.session = GenerationSessionManager(self.store, self.output, self.locale, bridge)
        self.settings = ChatSettings(
            output=self.output,
            locale=self.locale,
            task_manager=self.task_manager,
            bridge=bridge,
        )
        self.registry = SlashCommandRegistry()
        self.autocomplete = AutocompleteEngine(self.registry)
        self.suggestions = AutocompleteState()
        self.dispatch_in_background = False
        self.dispatcher = MessageDispatcher(
            store=self.store,
            history=self.history,
            session=self.session,
            settings=self.settings,
            output=self.output,
            locale=self.locale,
            bridge=bridge,
            options=DispatchOptions.from_config(self.config),
        )

    # Lifecycle

    def attach_view(self, view: ChatView) -> None:
        self.output.view = view

    async def start(self) -> None:
        """Load persisted settings; missing values keep their defaults."""
        await self.settings.load_all()
        LOGGER.info(
            "controller.started",
            extra={"event": "controller.started", "language": self.locale.language},
        )

    async def shutdown(self) -> None:
        await self.task_manager.cancel_all()

    # Read access

    @property
    def transcript(self) -> tuple[TranscriptMessage, ...]:
        return self.store.messages

    @property
    def is_generating(self) -> bool:
        return self.session.is_generating

    @property
    def scroll_guard(self) -> AutoScrollGuard:
        return self.output.scroll_guard

    @property
    def badge(self) -> str | None:
        return self.dispatcher.badge

    def clear_badge(self) -> None:
        self.dispatcher.set_badge(None)

    # Input

    async def dispatch(self, text: str, attachments: Sequence[Attachment] = ()) -> bool:
        self.suggestions = AutocompleteState()
        return await self.dispatcher.dispatch(text, attachments)

    async def cancel(self) -> bool:
        return await self.session.cancel()

    def get_candidates(self, text: str) -> list[SlashCommandNode]:
        return self.autocomplete.candidates(text)

    def update_input(self, text: str) -> str:
        """Track typed input; returns the visible input after badge detection."""
        visible = self.dispatcher.detect_badge(text)
        self.suggestions = update_input(self.autocomplete, visible)
        return visible

    async def _apply(self, outcome: KeyOutcome) -> KeyOutcome:
        self.suggestions = outcome.state
        if outcome.submit is None:
            return outcome
        if self.dispatch_in_background:
            self.task_manager.spawn(self.dispatch(outcome.submit))
        else:
            await self.dispatch(outcome.submit)
        return outcome

    async def on_keydown(self, key: str) -> KeyOutcome:
        """Feed a key to the suggestion panel; submits when a leaf is chosen."""
        return await self._apply(handle_key(self.autocomplete, self.suggestions, key))

    async def on_suggestion_mouse_down(self, index: int) -> KeyOutcome:
        return await self._apply(choose(self.autocomplete, self.suggestions, index))

    # Host push notifications

    def on_language_changed(self, code: str | None) -> None:
        self.locale.set_language(code)
        self.history.invalidate()

    def on_tone_changed(self, tone: str | None) -> None:
        self.locale.set_tone(tone)

    def on_translate_mode_changed(self, mode: Any) -> bool:
        return self.settings.translate_mode.apply_push(mode)

    def on_web_search_changed(self, enabled: Any) -> bool:
        return self.settings.web_search.apply_push(enabled)

    # Shortcut flows

    async def explain_clipboard(self, text: str, *, detailed: bool = False) -> None:
        await self.dispatcher.explain_clipboard(text, detailed=detailed)

    async def explain_screenshot(self, data: str, mime_type: str = "image/png", *, detailed: bool = False) -> None:
        await self.dispatcher.explain_screenshot(data, mime_type, detailed=detailed)
