"""Message dispatch: turn raw input into a slash command, a media command, or a chat turn.

Every backend call runs under a session token from
:class:`~gemchat.session.GenerationSessionManager`. Failures are funnelled
through one helper so that the thinking indicator and generating state are
always settled in ``finally``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from contextlib import nullcontext
from dataclasses import dataclass, field
import logging
import mimetypes
from pathlib import Path
import re
from typing import Any

from .exceptions import BridgeUnavailableError, GenerationCancelledError
from .gateway import (
    FileData,
    GenerationResult,
    TextOptions,
    UrlContent,
    bridge_method,
    is_cancellation_error,
    normalize_file_data,
    normalize_media_result,
    normalize_text_result,
    normalize_url_content,
)
from .history_cache import HistoryContextCache
from .locale import LocaleContext, get_text
from .prompts import (
    MAX_ATTACHMENT_CHARS,
    build_attachment_text,
    build_chat_prompt,
    build_continuation_prompt,
    build_explain_prompt,
    build_screenshot_prompt,
    build_slide_prompt,
    build_summary_prompt,
    build_translation_prompt,
    build_url_context,
    extract_urls,
    identity_answer,
    is_identity_question,
    screenshot_question,
)
from .session import GenerationSessionManager
from .settings import ChatSettings, TunableSetting
from .slash_commands import TRANSLATE_PREFIX, normalize_translate_code
from .transcript import Role, TranscriptMessage, TranscriptStore
from .view import ChatOutput

LOGGER = logging.getLogger(__name__)

MEDIA_COMMAND = re.compile(r"^@(image|video|slide)\b\s*(.*)$", re.IGNORECASE | re.DOTALL)
BADGE_PREFIX = re.compile(r"^\s*@(image|video|slide)\s+", re.IGNORECASE)
MEDIA_KINDS = ("image", "video", "slide")
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".heic"}


@dataclass(frozen=True)
class Attachment:
    """A file the user attached to a message."""

    path: str
    mime_type: str = ""

    @property
    def name(self) -> str:
        return Path(self.path).name

    @property
    def is_image(self) -> bool:
        mime_type = self.mime_type or mimetypes.guess_type(self.path)[0] or ""
        return mime_type.startswith("image/") or Path(self.path).suffix.lower() in IMAGE_SUFFIXES


@dataclass(frozen=True)
class DispatchOptions:
    """Backend and window settings the dispatcher needs from configuration."""

    model: str = ""
    generation_config: dict[str, Any] = field(default_factory=dict)
    url_max_length: int = 5000
    url_timeout_ms: int = 10000
    max_urls: int = 2
    compact_max_messages: int = 30
    compact_max_chars: int = 8000
    contact_url: str = ""

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DispatchOptions:
        gateway = config.get("gateway", {})
        url_fetch = config.get("url_fetch", {})
        history = config.get("history", {})
        return cls(
            model=str(gateway.get("model", "")),
            generation_config=dict(config.get("generation", {})),
            url_max_length=int(url_fetch.get("max_length", 5000)),
            url_timeout_ms=int(url_fetch.get("timeout_ms", 10000)),
            max_urls=int(url_fetch.get("max_urls", 2)),
            compact_max_messages=int(history.get("compact_max_messages", 30)),
            compact_max_chars=int(history.get("compact_max_chars", 8000)),
            contact_url=str(gateway.get("contact_url", "")),
        )


SlashHandler = Callable[[str], Awaitable[None]]


class MessageDispatcher:
    """Single entry point for user input and shortcut flows."""

    def __init__(
        self,
        *,
        store: TranscriptStore,
        history: HistoryContextCache,
        session: GenerationSessionManager,
        settings: ChatSettings,
        output: ChatOutput,
        locale: LocaleContext,
        bridge: Any = None,
        options: DispatchOptions | None = None,
    ) -> None:
        self.store = store
        self.history = history
        self.session = session
        self.settings = settings
        self.output = output
        self.locale = locale
        self.bridge = bridge
        self.options = options or DispatchOptions()
        self.badge: str | None = None
        self._owner: object | None = None
        self._owner_cancel_count = 0
        self._slash_handlers: dict[str, SlashHandler] = {
            "/clear": self._clear,
            "/compact": self._compact,
            "/next": self._next,
            "/contact": self._contact,
            "/help": self._help,
            "/translate": self._translate_mode,
            "/web": self._web,
            "/image": self._image_settings,
            "/video": self._video_settings,
            "/slide": self._slide_settings,
        }

    @property
    def busy(self) -> bool:
        """True while a dispatch holds the send lock.

        A cancel frees the lock at once even if the cancelled backend call
        has not returned yet.
        """
        return self._owner is not None and self._owner_cancel_count == self.session.cancel_count

    def _text(self, key: str, *args: Any) -> str:
        return get_text(self.locale, key, *args)

    # Command badge

    def set_badge(self, kind: str | None) -> None:
        normalized = (kind or "").strip().lstrip("@").lower()
        self.badge = normalized if normalized in MEDIA_KINDS else None

    def detect_badge(self, text: str) -> str:
        """Turn a typed ``@image `` prefix into a badge and return the remaining input."""
        match = BADGE_PREFIX.match(text)
        if match is None:
            return text
        self.set_badge(match.group(1))
        return text[match.end() :]

    # Entry point

    async def dispatch(self, raw: str, attachments: Sequence[Attachment] = ()) -> bool:
        """Classify and handle one submission.

        Returns False when the input was ignored, either because it was empty
        or because another dispatch is still running.
        """
        if self.busy:
            LOGGER.debug("dispatch.busy", extra={"event": "dispatch.busy"})
            return False
        text = (raw or "").strip()
        if not text and not attachments and self.badge is None:
            return False
        owner = object()
        self._owner = owner
        self._owner_cancel_count = self.session.cancel_count
        try:
            if self.badge is not None and not text.startswith("/"):
                text = f"@{self.badge} {text}".strip()
            await self._route(text, list(attachments))
        except Exception as exc:  # noqa: BLE001 - surfaced once as a status line.
            LOGGER.error(
                "dispatch.error",
                extra={
                    "event": "dispatch.error",
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            self.output.error(f"{self._text('errorOccurred')}: {exc}")
        finally:
            if self._owner is owner:
                self._owner = None
        return True

    async def _route(self, text: str, attachments: list[Attachment]) -> None:
        if text.startswith("/"):
            await self._handle_slash(text)
            return
        match = MEDIA_COMMAND.match(text)
        if match is not None:
            await self._handle_media(match.group(1).lower(), match.group(2).strip(), text, attachments)
            return
        await self._handle_chat(text, attachments)

    # Shared generation plumbing

    def _text_options(self, source: str) -> dict[str, Any]:
        return TextOptions(
            model=self.options.model,
            generation_config=self.options.generation_config,
            use_web_search=bool(self.settings.web_search.value),
            source=source,
        ).as_dict()

    async def _run_text(
        self,
        token: int,
        call: Callable[[], Awaitable[Any]],
        on_result: Callable[[GenerationResult], None] | None = None,
    ) -> None:
        """Await ``call`` and hand its result to the session under ``token``."""
        try:
            result = normalize_text_result(await call())
            if on_result is None:
                self.session.complete(token, result)
            elif self.session.accept(token):
                on_result(result)
        except BridgeUnavailableError:
            if self.session.accept(token):
                self.output.status(self._text("apiUnavailable"))
        except Exception as exc:  # noqa: BLE001 - the session decides what is shown.
            self.session.fail(token, exc)
        finally:
            self.session.release(token)

    async def _generate_text(self, token: int, prompt: str, source: str) -> None:
        await self._run_text(
            token,
            lambda: bridge_method(self.bridge, "generate_text")(prompt, self._text_options(source)),
        )

    # Plain chat

    async def _handle_chat(self, text: str, attachments: list[Attachment]) -> None:
        history = self.history.get()
        if text:
            self.output.user(text)
            self.store.append_user(text)

        if text and not attachments and is_identity_question(self.locale, text):
            answer = identity_answer(self.locale)
            self.store.append_assistant(answer)
            self.output.assistant(answer)
            return

        token = self.session.begin()

        async def call() -> Any:
            url_context = await self._collect_url_context(token, text)
            attachments_text, image = await self._read_attachments(token, attachments)
            if not self.session.is_current(token):
                raise GenerationCancelledError()
            prompt = build_chat_prompt(
                self.locale,
                text,
                history,
                url_context=url_context,
                attachments_text=attachments_text,
            )
            options = self._text_options("chat")
            if image is not None:
                generate_with_image = bridge_method(self.bridge, "generate_with_image")
                return await generate_with_image(prompt, image.data, image.mime_type, options)
            return await bridge_method(self.bridge, "generate_text")(prompt, options)

        await self._run_text(token, call)

    async def _collect_url_context(self, token: int, text: str) -> str:
        urls = extract_urls(text, self.options.max_urls)
        if not urls:
            return ""
        try:
            fetch = bridge_method(self.bridge, "fetch_url_content")
        except BridgeUnavailableError:
            return ""
        fetch_options = {
            "max_length": self.options.url_max_length,
            "timeout_ms": self.options.url_timeout_ms,
        }
        contents: list[tuple[str, UrlContent]] = []
        for url in urls:
            try:
                content = normalize_url_content(await fetch(url, fetch_options), url)
            except Exception as exc:  # noqa: BLE001 - a failed page does not abort the turn.
                if is_cancellation_error(exc):
                    raise
                content = UrlContent(error=str(exc), final_url=url)
            if content.error and self.session.is_current(token):
                self.output.status(self._text("urlFetchFailed", url, content.error))
            contents.append((url, content))
        return build_url_context(self.locale, contents)

    async def _read_attachments(
        self, token: int, attachments: Iterable[Attachment]
    ) -> tuple[str, FileData | None]:
        """Read text attachments into prompt text and return the first image."""
        blocks: list[str] = []
        image: FileData | None = None
        for attachment in attachments:
            if attachment.is_image:
                if image is not None:
                    continue
                data = await self._read_image(attachment)
                if data is not None:
                    image = data
                continue
            try:
                raw = await bridge_method(self.bridge, "read_file_text")(attachment.path, MAX_ATTACHMENT_CHARS)
            except BridgeUnavailableError as exc:
                self.output.status(self._text("attachmentFailed", attachment.name, exc))
                continue
            if isinstance(raw, dict) and raw.get("error"):
                self.output.status(self._text("attachmentFailed", attachment.name, raw["error"]))
                continue
            content = raw.get("text", "") if isinstance(raw, dict) else str(raw or "")
            if content:
                blocks.append(build_attachment_text(attachment.name, content, self.locale))
        return "\n\n".join(blocks), image

    async def _read_image(self, attachment: Attachment) -> FileData | None:
        try:
            data = normalize_file_data(await bridge_method(self.bridge, "read_file_base64")(attachment.path))
        except BridgeUnavailableError as exc:
            data = FileData(error=str(exc))
        if data.error:
            self.output.status(self._text("attachmentFailed", attachment.name, data.error))
            return None
        if attachment.mime_type:
            return FileData(data=data.data, mime_type=attachment.mime_type)
        return data

    # Slash commands

    async def _handle_slash(self, text: str) -> None:
        command, _, argument = text.partition(" ")
        name = command.lower()
        argument = argument.strip()
        if name.startswith(TRANSLATE_PREFIX):
            await self._translate(command, name[len(TRANSLATE_PREFIX) :], argument)
            return
        handler = self._slash_handlers.get(name)
        if handler is None:
            self.output.status(self._text("availableCommands"))
            return
        LOGGER.debug("dispatch.slash", extra={"event": "dispatch.slash", "command": name})
        await handler(argument)

    async def _clear(self, argument: str) -> None:
        self.session.invalidate()
        self.store.clear()
        self.output.clear()
        self.output.status(self._text("historyCleared"))

    async def _compact(self, argument: str) -> None:
        if not len(self.store):
            self.output.status(self._text("noHistory"))
            return
        history = self.history.get(
            max_chars=self.options.compact_max_chars,
            max_messages=self.options.compact_max_messages,
        )
        prompt = build_summary_prompt(self.locale, history)

        def replace_history(result: GenerationResult) -> None:
            self.store.replace([TranscriptMessage(role=Role.ASSISTANT, content=result.text)])
            self.output.clear()
            self.output.assistant(result.text)
            self.output.status(self._text("historyCompacted"))

        token = self.session.begin()
        await self._run_text(
            token,
            lambda: bridge_method(self.bridge, "generate_text")(prompt, self._text_options("compact")),
            replace_history,
        )

    async def _next(self, argument: str) -> None:
        last = self.store.last_assistant()
        if last is None:
            self.output.status(self._text("noPreviousAI"))
            return
        prompt = build_continuation_prompt(self.locale, last.content, self.history.get())
        token = self.session.begin()
        await self._generate_text(token, prompt, "next")

    async def _contact(self, argument: str) -> None:
        try:
            await bridge_method(self.bridge, "open_external")(self.options.contact_url)
        except BridgeUnavailableError:
            self.output.status(self._text("contactUnavailable"))

    async def _help(self, argument: str) -> None:
        self.output.status(self._text("availableCommands"))

    async def _translate(self, command: str, suffix: str, argument: str) -> None:
        code = normalize_translate_code(suffix)
        if code is None:
            self.output.status(self._text("translateHelp"))
            return
        source = argument
        if not source:
            last = self.store.last_assistant()
            source = last.content if last is not None else ""
        if not source:
            self.output.status(self._text("translateNothing"))
            return
        self.output.user(f"{command} {argument}".strip())
        prompt = build_translation_prompt(self.locale, source, code, self.settings.translate_mode.value)
        token = self.session.begin()
        await self._generate_text(token, prompt, "translate")

    async def _translate_mode(self, argument: str) -> None:
        value = argument.lower()
        if value in ("literal", "free"):
            self.settings.translate_mode.set(value)
        elif value == "status":
            self.settings.translate_mode.report()
        else:
            self.output.status(self._text("translateHelp"))

    async def _web(self, argument: str) -> None:
        value = argument.lower()
        if value in ("on", "off"):
            self.settings.web_search.set(value)
        elif value in ("", "status"):
            self.settings.web_search.report()
        else:
            self.output.status(self._text("webHelp"))

    def _apply_subcommand(
        self,
        argument: str,
        targets: dict[str, TunableSetting],
        status: Callable[[], str],
        help_key: str,
    ) -> None:
        sub, _, value = argument.partition(" ")
        sub = sub.lower()
        value = value.strip()
        if sub in ("", "status"):
            self.output.status(status())
            return
        setting = targets.get(sub)
        if setting is None:
            self.output.status(self._text(help_key))
        elif value:
            setting.set(value)
        else:
            setting.report()

    async def _image_settings(self, argument: str) -> None:
        self._apply_subcommand(
            argument,
            {"size": self.settings.image_size, "count": self.settings.image_count},
            self.settings.image_status,
            "imageHelp",
        )

    async def _video_settings(self, argument: str) -> None:
        self._apply_subcommand(
            argument,
            {
                "size": self.settings.video_size,
                "quality": self.settings.video_quality,
                "duration": self.settings.video_duration,
                "count": self.settings.video_count,
            },
            self.settings.video_status,
            "videoHelp",
        )

    async def _slide_settings(self, argument: str) -> None:
        self._apply_subcommand(
            argument,
            {
                "size": self.settings.slide_size,
                "count": self.settings.slide_count,
                "prompt": self.settings.slide_prompt,
            },
            self.settings.slide_status,
            "slideHelp",
        )

    # Media generation

    async def _reference_images(self, attachments: list[Attachment]) -> list[dict[str, str]]:
        references: list[dict[str, str]] = []
        for attachment in attachments:
            if not attachment.is_image:
                continue
            data = await self._read_image(attachment)
            if data is not None:
                references.append({"data": data.data, "mime_type": data.mime_type})
        return references

    def _media_request(self, kind: str, prompt: str, references: list[dict[str, str]]) -> tuple[str, str, dict[str, Any], int]:
        """Return ``(bridge method, prompt, options, count)`` for a media command."""
        settings = self.settings
        if kind == "video":
            options: dict[str, Any] = {
                "aspect_ratio": settings.video_size.value,
                "duration_seconds": settings.video_duration.value,
                "resolution": settings.video_quality.value,
            }
            if references:
                options["reference_image"] = references[0]
            return "generate_video_from_text", prompt, options, settings.video_count.value

        if kind == "slide":
            text = build_slide_prompt(self.locale, prompt, settings.slide_prompt.value)
            aspect_ratio, count = settings.slide_size.value, settings.slide_count.value
        else:
            text = prompt
            aspect_ratio, count = settings.image_size.value, settings.image_count.value
        options = {}
        if aspect_ratio != "auto":
            options["aspect_ratio"] = aspect_ratio
        if references:
            options["reference_images"] = references
        return "generate_image_from_text", text, options, count

    async def _handle_media(self, kind: str, prompt: str, raw: str, attachments: list[Attachment]) -> None:
        if not prompt:
            self.output.status(self._text(f"{kind}Help"))
            return
        self.output.user(raw)
        self.store.append_user(raw)
        references = await self._reference_images(attachments)
        method, text, options, count = self._media_request(kind, prompt, references)
        media_kind = "video" if kind == "video" else "image"

        token = self.session.begin()
        try:
            generate = bridge_method(self.bridge, method)
            results = []
            for _ in range(max(1, count)):
                raw_result = await generate(text, dict(options))
                if not self.session.is_current(token):
                    return
                results.append(normalize_media_result(raw_result, media_kind))
            if not self.session.accept(token):
                return
            for result in results:
                if result.ok:
                    self.output.media(media_kind, result.data, result.mime_type)
                else:
                    self.output.status(self._text("mediaFailed", result.error))
                    break
        except BridgeUnavailableError:
            if self.session.accept(token):
                self.output.status(self._text("mediaUnsupported"))
        except Exception as exc:  # noqa: BLE001 - the session decides what is shown.
            self.session.fail(token, exc)
        finally:
            self.session.release(token)

    # Shortcut flows

    async def explain_clipboard(self, text: str, *, detailed: bool = False) -> None:
        """Explain copied text; detailed explanations hold the auto-scroll guard."""
        content = (text or "").strip()
        if not content:
            return
        self.output.system_question(content)
        self.store.append_user(content)
        prompt = build_explain_prompt(self.locale, content, detailed=detailed)
        guard = self.output.scroll_guard.suppressed() if detailed else nullcontext()
        with guard:
            token = self.session.begin()
            await self._generate_text(token, prompt, "shortcut")

    async def explain_screenshot(self, data: str, mime_type: str = "image/png", *, detailed: bool = False) -> None:
        if not data:
            return
        question = screenshot_question(self.locale, detailed=detailed)
        self.output.system_question(question)
        self.store.append_user(question)
        prompt = build_screenshot_prompt(self.locale, detailed=detailed)
        guard = self.output.scroll_guard.suppressed() if detailed else nullcontext()
        with guard:
            token = self.session.begin()
            await self._run_text(
                token,
                lambda: bridge_method(self.bridge, "generate_with_image")(
                    prompt, data, mime_type, self._text_options("shortcut")
                ),
            )
