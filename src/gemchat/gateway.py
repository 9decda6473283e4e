"""Host bridge contract and normalization of generation backend results.

The conversational core treats the backend as a set of opaque async
callables supplied by a host bridge. Bridges may omit any method; callers
use :func:`bridge_method` and degrade to an "unavailable" status instead of
raising.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import re
from typing import Any, Protocol, runtime_checkable

from .exceptions import BridgeUnavailableError, GatewayError, GenerationCancelledError

CANCELLATION_PATTERN = re.compile(r"CANCELLED|Abort", re.IGNORECASE)

_SOURCES_HEADING = re.compile(
    r"^\s*(?:#{1,6}\s*)?(?:\*\*)?\s*(?:Sources|References|参考|出典)\s*(?:\*\*)?\s*[:：]?\s*(?:\*\*)?\s*$",
    re.IGNORECASE,
)
_URL = re.compile(r"https?://[^\s)>\]]+")
_MARKDOWN_LINK = re.compile(r"\[(?P<title>[^\]]+)\]\((?P<url>https?://[^)\s]+)\)")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


@dataclass(frozen=True)
class Source:
    """A web source cited by a grounded answer."""

    title: str
    url: str


@dataclass(frozen=True)
class GenerationResult:
    """Normalized text generation result."""

    text: str
    sources: tuple[Source, ...] = ()


@dataclass(frozen=True)
class MediaResult:
    """Normalized image or video generation result."""

    data: str = ""
    mime_type: str = ""
    error: str = ""

    @property
    def ok(self) -> bool:
        return bool(self.data) and not self.error


@dataclass(frozen=True)
class UrlContent:
    """Normalized URL fetch result."""

    text: str = ""
    truncated: bool = False
    final_url: str = ""
    error: str = ""


@dataclass(frozen=True)
class FileData:
    """Base64 file payload read through the bridge."""

    data: str = ""
    mime_type: str = ""
    error: str = ""


@dataclass(frozen=True)
class TextOptions:
    """Options forwarded with every text generation call."""

    model: str = ""
    generation_config: dict[str, Any] = field(default_factory=dict)
    use_web_search: bool = False
    source: str = "chat"

    def as_dict(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "generation_config": dict(self.generation_config),
            "use_web_search": self.use_web_search,
            "source": self.source,
        }


@runtime_checkable
class HostBridge(Protocol):
    """Async collaborators the core consumes. Every method is optional."""

    async def generate_text(self, prompt: str, options: dict[str, Any]) -> Any: ...

    async def generate_with_image(
        self, prompt: str, image_base64: str, mime_type: str, options: dict[str, Any]
    ) -> Any: ...

    async def generate_image_from_text(self, prompt: str, options: dict[str, Any]) -> Any: ...

    async def generate_video_from_text(self, prompt: str, options: dict[str, Any]) -> Any: ...

    async def fetch_url_content(self, url: str, options: dict[str, Any]) -> Any: ...

    async def read_file_base64(self, path: str) -> Any: ...

    async def read_file_text(self, path: str, max_chars: int) -> Any: ...

    async def open_external(self, url: str) -> Any: ...

    async def cancel_ai(self) -> None: ...

    async def get_setting(self, key: str) -> Any: ...

    async def set_setting(self, key: str, value: Any) -> None: ...


def bridge_method(bridge: Any, name: str) -> Callable[..., Awaitable[Any]]:
    """Return a bridge coroutine function or raise ``BridgeUnavailableError``."""
    method = getattr(bridge, name, None) if bridge is not None else None
    if method is None or not callable(method):
        raise BridgeUnavailableError(f"Host bridge does not provide {name}().")
    return method


def is_cancellation_error(exc: BaseException) -> bool:
    """Return True when ``exc`` looks like a cancelled or aborted request."""
    if isinstance(exc, (asyncio.CancelledError, GenerationCancelledError)):
        return True
    return bool(CANCELLATION_PATTERN.search(str(exc) or ""))


def _first(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _normalize_sources(raw: Any) -> list[Source]:
    sources: list[Source] = []
    if not isinstance(raw, (list, tuple)):
        return sources
    for item in raw:
        if isinstance(item, Source):
            sources.append(item)
        elif isinstance(item, str) and _URL.match(item.strip()):
            sources.append(Source(title=item.strip(), url=item.strip()))
        elif isinstance(item, dict):
            url = str(_first(item, "url", "uri") or "").strip()
            if url:
                title = str(item.get("title") or url).strip()
                sources.append(Source(title=title, url=url))
    return sources


def _merge_sources(*groups: list[Source]) -> tuple[Source, ...]:
    seen: set[str] = set()
    merged: list[Source] = []
    for group in groups:
        for source in group:
            if source.url in seen:
                continue
            seen.add(source.url)
            merged.append(source)
    return tuple(merged)


def _parse_source_line(line: str) -> Source | None:
    link = _MARKDOWN_LINK.search(line)
    if link:
        return Source(title=link.group("title").strip(), url=link.group("url"))
    url_match = _URL.search(line)
    if url_match is None:
        return None
    url = url_match.group(0).rstrip(".,;")
    title = _LIST_MARKER.sub("", line[: url_match.start()]).strip(" -:–—<")
    return Source(title=title or url, url=url)


def split_trailing_sources(text: str) -> tuple[str, list[Source]]:
    """Split a trailing "Sources" block off ``text``.

    The block must be a heading line followed only by list lines that each
    carry a URL; anything else leaves the text untouched.
    """
    lines = text.rstrip().splitlines()
    for index in range(len(lines) - 1, -1, -1):
        if not _SOURCES_HEADING.match(lines[index]):
            continue
        tail = [line for line in lines[index + 1 :] if line.strip()]
        if not tail:
            return text, []
        parsed = [_parse_source_line(line) for line in tail]
        if any(source is None for source in parsed):
            return text, []
        body = "\n".join(lines[:index]).rstrip()
        return body, [source for source in parsed if source is not None]
    return text, []


def normalize_text_result(raw: Any) -> GenerationResult:
    """Normalize ``{text, sources[]}`` or a bare string into a result."""
    if isinstance(raw, str):
        text, sources = raw, []
    elif isinstance(raw, dict) and isinstance(raw.get("text"), str):
        text, sources = raw["text"], _normalize_sources(raw.get("sources"))
    else:
        raise GatewayError("Unexpected response from API.")
    body, trailing = split_trailing_sources(text.strip())
    return GenerationResult(text=body, sources=_merge_sources(sources, trailing))


def normalize_media_result(raw: Any, kind: str) -> MediaResult:
    """Normalize ``{<kind>_base64, mime_type} | {error}`` payloads."""
    if not isinstance(raw, dict):
        return MediaResult(error="Unexpected response from API.")
    error = raw.get("error")
    if error:
        return MediaResult(error=str(error))
    camel = "imageBase64" if kind == "image" else "videoBase64"
    data = _first(raw, f"{kind}_base64", camel, "data")
    mime_type = _first(raw, "mime_type", "mimeType") or (
        "image/png" if kind == "image" else "video/mp4"
    )
    if not isinstance(data, str) or not data:
        return MediaResult(error="Unexpected response from API.")
    return MediaResult(data=data, mime_type=str(mime_type))


def normalize_url_content(raw: Any, url: str) -> UrlContent:
    if not isinstance(raw, dict):
        return UrlContent(error="Unexpected response from API.")
    if raw.get("error"):
        return UrlContent(error=str(raw["error"]), final_url=url)
    return UrlContent(
        text=str(raw.get("text") or ""),
        truncated=bool(raw.get("truncated", False)),
        final_url=str(_first(raw, "final_url", "finalUrl") or url),
    )


def normalize_file_data(raw: Any) -> FileData:
    if not isinstance(raw, dict):
        return FileData(error="Unexpected response from API.")
    if raw.get("error"):
        return FileData(error=str(raw["error"]))
    data = _first(raw, "data", "base64")
    if not isinstance(data, str) or not data:
        return FileData(error="File is empty.")
    return FileData(
        data=data, mime_type=str(_first(raw, "mime_type", "mimeType") or "image/png")
    )
