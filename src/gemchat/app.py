"""Textual front-end for gemchat.

The app is a thin view: it renders what the controller emits and forwards
input, keys, and button presses to it.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, VerticalScroll
from textual.widgets import Button, Footer, Header, Input, Label, Markdown, OptionList, Static
from textual.widgets.option_list import Option

from .config import load_config
from .controller import ChatController
from .locale import get_text
from .logging_utils import configure_logging
from .ollama_bridge import OllamaBridge
from .persistence import SettingsPersistence
from .view import DisplayMessage, MessageKind

LOGGER = logging.getLogger(__name__)

SUGGESTION_KEYS = {"up", "down", "tab", "shift+tab", "right", "enter", "escape"}


class PromptInput(Input):
    """Message input that routes navigation keys to the suggestion panel."""

    async def on_key(self, event: events.Key) -> None:
        app = self.app
        if not isinstance(app, ChatApp):
            return
        if event.key not in SUGGESTION_KEYS or not app.controller.suggestions.visible:
            return
        event.prevent_default()
        event.stop()
        outcome = await app.controller.on_keydown(event.key)
        app.sync_input(outcome.state.text if outcome.submit is None else "")


class ChatApp(App[None]):
    """Chat window bound to a :class:`ChatController`."""

    CSS = """
    Screen {
        layout: vertical;
        background: $background;
    }

    #app-root {
        layout: vertical;
        height: 1fr;
    }

    #conversation {
        height: 1fr;
        padding: 1;
    }

    .message {
        margin: 1 0 0 0;
        padding: 0 1;
    }

    .message-user {
        background: $primary 20%;
    }

    .message-system-question {
        background: $secondary 20%;
        text-style: italic;
    }

    .message-status {
        color: $text-muted;
    }

    .message-error {
        color: $error;
    }

    #slash_menu {
        max-height: 8;
        margin: 0 1;
    }

    #slash_menu.hidden {
        display: none;
    }

    #input_row {
        height: auto;
        padding: 0 1 1 1;
        border-top: solid $panel;
    }

    #badge {
        margin: 1 1 0 0;
        color: $accent;
    }

    #badge.hidden {
        display: none;
    }

    #message_input {
        width: 1fr;
    }

    #send_button {
        margin-left: 1;
        min-width: 10;
    }
    """

    DEFAULT_ACTION_DESCRIPTIONS: dict[str, str] = {
        "send_message": "Send",
        "cancel_generation": "Stop",
        "clear_history": "Clear",
        "quit": "Quit",
    }

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        bridge: Any | None = None,
    ) -> None:
        self.config = config if config is not None else load_config()
        configure_logging(self.config["logging"])
        LOGGER.info(
            "app.python",
            extra={
                "event": "app.python",
                "executable": sys.executable,
                "version": sys.version.split()[0],
            },
        )
        gateway = self.config["gateway"]
        if bridge is None:
            bridge = OllamaBridge(
                host=str(gateway["host"]),
                model=str(gateway["model"]),
                vision_model=str(gateway.get("vision_model", "")),
                timeout=int(gateway["timeout"]),
                settings=SettingsPersistence(str(self.config["settings"]["path"])),
            )
        self.controller = ChatController(self.config, bridge=bridge, view=self)
        self.controller.dispatch_in_background = True
        self._binding_specs = self._binding_specs_from_config(self.config)
        super().__init__()

    @classmethod
    def _binding_specs_from_config(cls, config: dict[str, dict[str, Any]]) -> list[Binding]:
        keybinds = config.get("keybinds", {})
        bindings: list[Binding] = []
        for action_name, description in cls.DEFAULT_ACTION_DESCRIPTIONS.items():
            binding_key = keybinds.get(action_name)
            if isinstance(binding_key, str) and binding_key.strip():
                bindings.append(Binding(binding_key.strip(), action_name, description, show=True))
        return bindings

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="app-root"):
            yield VerticalScroll(id="conversation")
            yield OptionList(id="slash_menu", classes="hidden")
            with Horizontal(id="input_row"):
                yield Label("", id="badge", classes="hidden")
                yield PromptInput(placeholder="Message, / for commands, @image ...", id="message_input")
                yield Button("Send", id="send_button", variant="primary")
        yield Footer()

    async def on_mount(self) -> None:
        self.title = str(self.config["app"]["title"])
        for binding in self._binding_specs:
            self.bind(binding.key, binding.action, description=binding.description, show=binding.show)
        await self.controller.start()
        self.query_one("#message_input", Input).focus()

    async def on_unmount(self) -> None:
        await self.controller.shutdown()

    # ChatView

    def render_message(self, message: DisplayMessage, *, scroll: bool) -> None:
        conversation = self.query_one("#conversation", VerticalScroll)
        classes = f"message message-{message.kind.value}"
        if message.kind == MessageKind.ASSISTANT:
            text = message.text
            if message.sources:
                heading = get_text(self.controller.locale, "sourcesHeading")
                links = "\n".join(f"- [{s.title}]({s.url})" for s in message.sources)
                text = f"{text}\n\n**{heading}**\n{links}"
            widget: Static | Markdown = Markdown(text, classes=classes)
        else:
            widget = Static(message.text, classes=classes, markup=False)
        conversation.mount(widget)
        if scroll:
            conversation.scroll_end(animate=False)

    def render_media(self, kind: str, data: str, mime_type: str, *, scroll: bool) -> None:
        size_kb = len(data) * 3 // 4 // 1024
        self.render_message(
            DisplayMessage(kind=MessageKind.STATUS, text=f"[{kind}: {mime_type}, {size_kb} KB]"),
            scroll=scroll,
        )

    def set_thinking(self, visible: bool) -> None:
        self.sub_title = get_text(self.controller.locale, "thinking") if visible else ""

    def set_generating(self, generating: bool) -> None:
        button = self.query_one("#send_button", Button)
        button.label = "Stop" if generating else "Send"
        button.variant = "error" if generating else "primary"

    def clear(self) -> None:
        self.query_one("#conversation", VerticalScroll).remove_children()

    # Input plumbing

    def sync_input(self, text: str) -> None:
        """Reflect controller state into the input, badge, and suggestion panel."""
        input_widget = self.query_one("#message_input", Input)
        if input_widget.value != text:
            input_widget.value = text
            input_widget.cursor_position = len(text)
        self._refresh_badge()
        self._refresh_suggestions()

    def _refresh_badge(self) -> None:
        badge = self.query_one("#badge", Label)
        current = self.controller.badge
        badge.update(f"@{current}" if current else "")
        badge.set_class(not current, "hidden")

    def _refresh_suggestions(self) -> None:
        menu = self.query_one("#slash_menu", OptionList)
        state = self.controller.suggestions
        menu.clear_options()
        if not state.visible:
            menu.add_class("hidden")
            return
        menu.add_options(
            [Option(f"{node.label}  {node.description}", id=str(i)) for i, node in enumerate(state.candidates)]
        )
        menu.highlighted = state.index
        menu.remove_class("hidden")

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id != "message_input":
            return
        visible = self.controller.update_input(event.value)
        if visible != event.value:
            self.sync_input(visible)
            return
        self._refresh_badge()
        self._refresh_suggestions()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "message_input":
            self._submit(event.value)

    async def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "slash_menu":
            return
        event.stop()
        outcome = await self.controller.on_suggestion_mouse_down(event.option_index)
        self.sync_input(outcome.state.text if outcome.submit is None else "")
        self.query_one("#message_input", Input).focus()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id != "send_button":
            return
        if self.controller.is_generating:
            await self.controller.cancel()
        else:
            self._submit(self.query_one("#message_input", Input).value)

    def _submit(self, text: str) -> None:
        """Run a dispatch in the background so the UI keeps handling events."""
        if self.controller.dispatcher.busy:
            return
        self.sync_input("")
        self.controller.task_manager.spawn(self.controller.dispatch(text))

    async def on_key(self, event: events.Key) -> None:
        if event.key == "backspace" and self.controller.badge:
            input_widget = self.query_one("#message_input", Input)
            if input_widget.has_focus and not input_widget.value:
                self.controller.clear_badge()
                self._refresh_badge()
                event.stop()

    def action_send_message(self) -> None:
        self._submit(self.query_one("#message_input", Input).value)

    async def action_cancel_generation(self) -> None:
        await self.controller.cancel()

    async def action_clear_history(self) -> None:
        self.controller.task_manager.spawn(self.controller.dispatch("/clear"))
