"""Tunable generation settings as small normalize/set/persist state machines.

Every setting shares one shape: input is normalized to the nearest valid
value (bad input falls back to the default, never raises), setting the
current value again reports "already" and stops, and a real change reports
"updated" and persists through the host bridge in the background. The
in-memory value is authoritative for the session, so persistence failures
are logged and otherwise ignored.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import re
from typing import Any

from .gateway import bridge_method
from .locale import LocaleContext, get_text
from .slash_commands import COUNTS, IMAGE_SIZES, SLIDE_SIZES, VIDEO_DURATIONS, VIDEO_QUALITIES, VIDEO_SIZES
from .task_manager import TaskManager
from .view import ChatOutput

LOGGER = logging.getLogger(__name__)

SLIDE_PROMPT_MAX_CHARS = 1000
_TRUE_WORDS = {"on", "true", "yes", "1", "enable", "enabled"}
_FALSE_WORDS = {"off", "false", "no", "0", "disable", "disabled"}
_CLEAR_WORDS = {"clear", "reset", "none", "off"}

Normalizer = Callable[[Any], Any]


def choice(options: tuple[str, ...], default: str) -> Normalizer:
    """Case-insensitive choice; ``16x9`` style ratios are accepted."""
    lookup = {option.lower(): option for option in options}

    def normalize(raw: Any) -> str:
        text = str(raw if raw is not None else "").strip().lower()
        text = re.sub(r"^(\d+)\s*[x×/]\s*(\d+)$", r"\1:\2", text)
        return lookup.get(text, default)

    return normalize


def bounded_int(low: int, high: int, default: int) -> Normalizer:
    """Integer clamped into ``[low, high]``; unparseable input gives ``default``."""

    def normalize(raw: Any) -> int:
        if isinstance(raw, bool):
            return default
        try:
            value = int(str(raw).strip().rstrip("sS"))
        except (TypeError, ValueError):
            return default
        return max(low, min(high, value))

    return normalize


def boolean(default: bool) -> Normalizer:
    def normalize(raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        text = str(raw if raw is not None else "").strip().lower()
        if text in _TRUE_WORDS:
            return True
        if text in _FALSE_WORDS:
            return False
        return default

    return normalize


def free_text(max_chars: int) -> Normalizer:
    def normalize(raw: Any) -> str:
        text = str(raw if raw is not None else "").strip()
        if text.lower() in _CLEAR_WORDS:
            return ""
        return text[:max_chars]

    return normalize


def _display_plain(ctx: LocaleContext, value: Any) -> str:
    return str(value)


def _display_localized(ctx: LocaleContext, value: Any) -> str:
    if isinstance(value, bool):
        return get_text(ctx, "value.on" if value else "value.off")
    return get_text(ctx, f"value.{value}")


def _display_seconds(ctx: LocaleContext, value: Any) -> str:
    return f"{value}s"


def _display_prompt(ctx: LocaleContext, value: Any) -> str:
    return str(value) if value else get_text(ctx, "value.none")


@dataclass(frozen=True)
class SettingSpec:
    """Domain, default, and presentation of one tunable setting."""

    key: str
    label_key: str
    default: Any
    normalize: Normalizer
    display: Callable[[LocaleContext, Any], str] = _display_plain


TRANSLATE_MODE = SettingSpec(
    "translate_mode", "label.translateMode", "literal", choice(("literal", "free"), "literal"), _display_localized
)
WEB_SEARCH = SettingSpec("web_search", "label.webSearch", False, boolean(False), _display_localized)
IMAGE_SIZE = SettingSpec("image_size", "label.imageSize", "1:1", choice(IMAGE_SIZES, "1:1"))
IMAGE_COUNT = SettingSpec("image_count", "label.imageCount", 1, bounded_int(1, len(COUNTS), 1))
VIDEO_SIZE = SettingSpec("video_size", "label.videoSize", "16:9", choice(VIDEO_SIZES, "16:9"))
VIDEO_QUALITY = SettingSpec("video_quality", "label.videoQuality", "720p", choice(VIDEO_QUALITIES, "720p"))
VIDEO_DURATION = SettingSpec(
    "video_duration",
    "label.videoDuration",
    4,
    bounded_int(int(VIDEO_DURATIONS[0]), int(VIDEO_DURATIONS[-1]), 4),
    _display_seconds,
)
VIDEO_COUNT = SettingSpec("video_count", "label.videoCount", 1, bounded_int(1, len(COUNTS), 1))
SLIDE_SIZE = SettingSpec("slide_size", "label.slideSize", "16:9", choice(SLIDE_SIZES, "16:9"))
SLIDE_COUNT = SettingSpec("slide_count", "label.slideCount", 1, bounded_int(1, len(COUNTS), 1))
SLIDE_PROMPT = SettingSpec(
    "slide_prompt", "label.slidePrompt", "", free_text(SLIDE_PROMPT_MAX_CHARS), _display_prompt
)


class TunableSetting:
    """Runtime state of one setting."""

    def __init__(
        self,
        spec: SettingSpec,
        *,
        output: ChatOutput,
        locale: LocaleContext,
        task_manager: TaskManager,
        bridge: Any = None,
    ) -> None:
        self.spec = spec
        self.output = output
        self.locale = locale
        self.task_manager = task_manager
        self.bridge = bridge
        self.value: Any = spec.default

    @property
    def label(self) -> str:
        return get_text(self.locale, self.spec.label_key)

    @property
    def display_value(self) -> str:
        return self.spec.display(self.locale, self.value)

    def set(self, raw: Any) -> bool:
        """Normalize and apply ``raw``; return True when the value changed."""
        value = self.spec.normalize(raw)
        if value == self.value:
            self.output.status(get_text(self.locale, "settingAlready", self.label, self.display_value))
            return False
        self.value = value
        self.output.status(get_text(self.locale, "settingUpdated", self.label, self.display_value))
        self.task_manager.spawn(self._persist(value))
        return True

    def report(self) -> None:
        self.output.status(get_text(self.locale, "settingStatus", self.label, self.display_value))

    def status_line(self) -> str:
        return get_text(self.locale, "settingStatus", self.label, self.display_value)

    async def _persist(self, value: Any) -> None:
        try:
            await bridge_method(self.bridge, "set_setting")(self.spec.key, value)
        except Exception as exc:  # noqa: BLE001 - in-memory value stays authoritative.
            LOGGER.debug(
                "settings.persist_failed",
                extra={
                    "event": "settings.persist_failed",
                    "key": self.spec.key,
                    "error_type": type(exc).__name__,
                },
            )

    async def load(self) -> None:
        """Read the stored value through the bridge, keeping the default on failure."""
        try:
            raw = await bridge_method(self.bridge, "get_setting")(self.spec.key)
        except Exception as exc:  # noqa: BLE001 - missing bridge means defaults.
            LOGGER.debug(
                "settings.load_failed",
                extra={
                    "event": "settings.load_failed",
                    "key": self.spec.key,
                    "error_type": type(exc).__name__,
                },
            )
            return
        if raw is not None:
            self.value = self.spec.normalize(raw)

    def apply_push(self, raw: Any) -> bool:
        """Adopt a value pushed by the host; report only real changes."""
        value = self.spec.normalize(raw)
        if value == self.value:
            return False
        self.value = value
        self.output.status(get_text(self.locale, "settingUpdated", self.label, self.display_value))
        return True


class TranslateModeSetting(TunableSetting):
    """Translate mode with a pending-acknowledgment slot.

    The host echoes a locally requested change back as a push notification.
    The pending value lets that echo pass without a second status line,
    exactly once.
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(TRANSLATE_MODE, **kwargs)
        self.pending: str | None = None

    def set(self, raw: Any) -> bool:
        changed = super().set(raw)
        if changed:
            self.pending = self.value
        return changed

    def apply_push(self, raw: Any) -> bool:
        value = self.spec.normalize(raw)
        if self.pending is not None and value == self.pending:
            self.pending = None
            self.value = value
            return False
        self.pending = None
        return super().apply_push(raw)


class ChatSettings:
    """All tunable settings of a chat session."""

    def __init__(
        self,
        *,
        output: ChatOutput,
        locale: LocaleContext,
        task_manager: TaskManager,
        bridge: Any = None,
    ) -> None:
        common = {"output": output, "locale": locale, "task_manager": task_manager, "bridge": bridge}
        self.translate_mode = TranslateModeSetting(**common)
        self.web_search = TunableSetting(WEB_SEARCH, **common)
        self.image_size = TunableSetting(IMAGE_SIZE, **common)
        self.image_count = TunableSetting(IMAGE_COUNT, **common)
        self.video_size = TunableSetting(VIDEO_SIZE, **common)
        self.video_quality = TunableSetting(VIDEO_QUALITY, **common)
        self.video_duration = TunableSetting(VIDEO_DURATION, **common)
        self.video_count = TunableSetting(VIDEO_COUNT, **common)
        self.slide_size = TunableSetting(SLIDE_SIZE, **common)
        self.slide_count = TunableSetting(SLIDE_COUNT, **common)
        self.slide_prompt = TunableSetting(SLIDE_PROMPT, **common)

    def all(self) -> list[TunableSetting]:
        return [
            self.translate_mode,
            self.web_search,
            self.image_size,
            self.image_count,
            self.video_size,
            self.video_quality,
            self.video_duration,
            self.video_count,
            self.slide_size,
            self.slide_count,
            self.slide_prompt,
        ]

    async def load_all(self) -> None:
        for setting in self.all():
            await setting.load()

    def image_status(self) -> str:
        return "\n".join(s.status_line() for s in (self.image_size, self.image_count))

    def video_status(self) -> str:
        return "\n".join(
            s.status_line()
            for s in (self.video_size, self.video_quality, self.video_duration, self.video_count)
        )

    def slide_status(self) -> str:
        return "\n".join(s.status_line() for s in (self.slide_size, self.slide_count, self.slide_prompt))
