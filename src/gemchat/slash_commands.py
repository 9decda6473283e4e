"""Static slash command registry.

Nodes form a small tree: a parent such as ``/video`` exposes children
(``/video size``, ``/video count`` ...) which may expose their own leaf
values. Children are joined to their parent by ``child_separator``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
import re


@dataclass(frozen=True)
class SlashCommandNode:
    """One entry in the slash command tree.

    ``key`` is the text applied to the input when the node is chosen;
    ``match`` is the lower-case string compared against typed input.
    """

    key: str
    description: str = ""
    children: tuple[SlashCommandNode, ...] = ()
    child_separator: str = " "
    value: str | None = None
    match: str = field(default="")

    def __post_init__(self) -> None:
        if not self.match:
            object.__setattr__(self, "match", self.key.lower())

    @property
    def label(self) -> str:
        return self.key

    @property
    def has_children(self) -> bool:
        return bool(self.children)

    @property
    def expansion(self) -> str:
        """Input text that expands this node into its children."""
        return f"{self.match}{self.child_separator}"


def _leaves(parent: str, values: Iterable[str], description: str) -> tuple[SlashCommandNode, ...]:
    return tuple(
        SlashCommandNode(key=f"{parent} {value}", description=description.format(value=value), value=value)
        for value in values
    )


TRANSLATE_CODES: tuple[str, ...] = (
    "en",
    "ja",
    "de",
    "es",
    "es-419",
    "fr",
    "id",
    "it",
    "ko",
    "pt-BR",
    "ru",
    "th",
    "tr",
    "vi",
    "zh-Hans",
    "zh-Hant",
)

TRANSLATE_CODE_ALIASES: dict[str, str] = {
    "zh-cn": "zh-Hans",
    "zh-sg": "zh-Hans",
    "zh-tw": "zh-Hant",
    "zh-hk": "zh-Hant",
}

_TRANSLATE_CODE_MAP: dict[str, str] = {
    **{code.lower(): code for code in TRANSLATE_CODES},
    **TRANSLATE_CODE_ALIASES,
}

TRANSLATE_PREFIX = "/translate_"

IMAGE_SIZES = ("auto", "1:1", "9:16", "16:9", "3:4", "4:3")
VIDEO_SIZES = ("16:9", "9:16")
VIDEO_QUALITIES = ("720p", "1080p")
VIDEO_DURATIONS = ("4", "5", "6", "7", "8")
SLIDE_SIZES = ("16:9", "9:16", "4:3", "3:4", "1:1")
COUNTS = ("1", "2", "3", "4")


def normalize_translate_code(code: str | None) -> str | None:
    """Map a user-typed language code to its canonical form, or ``None``."""
    if not code:
        return None
    return _TRANSLATE_CODE_MAP.get(str(code).strip().lower())


def translate_suffix(code: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "-", code.upper())


def _build_translate_targets() -> tuple[SlashCommandNode, ...]:
    return tuple(
        SlashCommandNode(
            key=f"{TRANSLATE_PREFIX}{translate_suffix(code)}",
            match=f"{TRANSLATE_PREFIX}{code.lower()}",
            description=f"Translate into {code}",
            value=code,
        )
        for code in TRANSLATE_CODES
    )


TRANSLATE_TARGETS = _build_translate_targets()

TRANSLATE_MODE_TARGETS = (
    SlashCommandNode("/translate literal", "Translate faithfully", value="literal"),
    SlashCommandNode("/translate free", "Translate naturally", value="free"),
    SlashCommandNode("/translate status", "Show translate mode", value="status"),
)

WEB_TARGETS = (
    SlashCommandNode("/web on", "Enable web search", value="on"),
    SlashCommandNode("/web off", "Disable web search", value="off"),
    SlashCommandNode("/web status", "Show web search state", value="status"),
)

IMAGE_TARGETS = (
    SlashCommandNode("/image status", "Show image settings", value="status"),
    SlashCommandNode(
        "/image size",
        "Set image aspect ratio",
        children=_leaves("/image size", IMAGE_SIZES, "Image size {value}"),
        value="size",
    ),
    SlashCommandNode(
        "/image count",
        "Set number of images",
        children=_leaves("/image count", COUNTS, "Generate {value} image(s)"),
        value="count",
    ),
)

VIDEO_TARGETS = (
    SlashCommandNode("/video status", "Show video settings", value="status"),
    SlashCommandNode(
        "/video size",
        "Set video aspect ratio",
        children=_leaves("/video size", VIDEO_SIZES, "Video size {value}"),
        value="size",
    ),
    SlashCommandNode(
        "/video quality",
        "Set video resolution",
        children=_leaves("/video quality", VIDEO_QUALITIES, "Video quality {value}"),
        value="quality",
    ),
    SlashCommandNode(
        "/video duration",
        "Set video length in seconds",
        children=_leaves("/video duration", VIDEO_DURATIONS, "{value} second video"),
        value="duration",
    ),
    SlashCommandNode(
        "/video count",
        "Set number of videos",
        children=_leaves("/video count", COUNTS, "Generate {value} video(s)"),
        value="count",
    ),
)

SLIDE_TARGETS = (
    SlashCommandNode("/slide status", "Show slide settings", value="status"),
    SlashCommandNode(
        "/slide size",
        "Set slide aspect ratio",
        children=_leaves("/slide size", SLIDE_SIZES, "Slide size {value}"),
        value="size",
    ),
    SlashCommandNode(
        "/slide count",
        "Set number of slides",
        children=_leaves("/slide count", COUNTS, "Generate {value} slide(s)"),
        value="count",
    ),
    SlashCommandNode("/slide prompt", "Set or clear the custom slide prompt", value="prompt"),
)

TOP_LEVEL_COMMANDS = (
    SlashCommandNode("/clear", "Clear the conversation"),
    SlashCommandNode("/compact", "Summarize and compress the conversation"),
    SlashCommandNode("/next", "Continue the last AI message"),
    SlashCommandNode("/contact", "Open the contact page"),
    SlashCommandNode("/help", "List available commands"),
    SlashCommandNode("/translate", "Translate text or the last AI message", children=TRANSLATE_MODE_TARGETS),
    SlashCommandNode("/web", "Toggle web search", children=WEB_TARGETS),
    SlashCommandNode("/image", "Image generation settings", children=IMAGE_TARGETS),
    SlashCommandNode("/video", "Video generation settings", children=VIDEO_TARGETS),
    SlashCommandNode("/slide", "Slide generation settings", children=SLIDE_TARGETS),
)


class SlashCommandRegistry:
    """Lookup over the command tree."""

    def __init__(
        self,
        commands: tuple[SlashCommandNode, ...] = TOP_LEVEL_COMMANDS,
        translate_targets: tuple[SlashCommandNode, ...] = TRANSLATE_TARGETS,
    ) -> None:
        self.commands = commands
        self.translate_targets = translate_targets

    def walk(self) -> Iterator[SlashCommandNode]:
        """Yield every node depth-first, parents before children."""
        stack = list(reversed(self.commands))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def parents(self) -> list[SlashCommandNode]:
        """Nodes with children, most specific (longest expansion) first."""
        nodes = [node for node in self.walk() if node.has_children]
        return sorted(nodes, key=lambda node: len(node.expansion), reverse=True)

    def find(self, key: str) -> SlashCommandNode | None:
        normalized = key.strip().lower()
        for node in self.walk():
            if node.match == normalized:
                return node
        for node in self.translate_targets:
            if node.match == normalized:
                return node
        return None

    def top_level_names(self) -> list[str]:
        return [node.key for node in self.commands]
