"""Short-lived memo of the serialized transcript excerpt fed into prompts."""

from __future__ import annotations

from collections.abc import Callable, Sequence
import time

from .locale import LocaleContext, role_label
from .transcript import TranscriptMessage, TranscriptStore

DEFAULT_TTL_MS = 500
DEFAULT_MAX_CHARS = 6000
DEFAULT_MAX_MESSAGES = 12


def serialize_history(
    messages: Sequence[TranscriptMessage], ctx: LocaleContext, max_chars: int
) -> str:
    """Render ``Role: content`` lines and keep the tail within ``max_chars``."""
    lines = [
        f"{role_label(ctx, message.role.value)}: {message.content}"
        for message in messages
        if message.content
    ]
    text = "\n".join(lines)
    if max_chars <= 0:
        return ""
    if len(text) > max_chars:
        text = text[-max_chars:]
    return text


class HistoryContextCache:
    """Cache the recent-history serialization for ``ttl_ms`` milliseconds.

    The cache subscribes to the transcript store, so any append, replace or
    clear drops the cached text before the next ``get``. Entries are keyed by
    the requested window and the locale language because both change the
    rendered text.
    """

    def __init__(
        self,
        store: TranscriptStore,
        locale: LocaleContext,
        *,
        ttl_ms: int = DEFAULT_TTL_MS,
        max_chars: int = DEFAULT_MAX_CHARS,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._locale = locale
        self.ttl_ms = max(0, ttl_ms)
        self.default_max_chars = max_chars
        self.default_max_messages = max_messages
        self._clock = clock
        self._text: str | None = None
        self._timestamp = 0.0
        self._key: tuple[int, int, str] | None = None
        store.subscribe(self.invalidate)

    def invalidate(self) -> None:
        """Drop the cached text; the next ``get`` recomputes."""
        self._text = None
        self._key = None

    def get(self, max_chars: int | None = None, max_messages: int | None = None) -> str:
        """Return the recent-history excerpt, recomputing when stale."""
        chars = self.default_max_chars if max_chars is None else max_chars
        count = self.default_max_messages if max_messages is None else max_messages
        key = (chars, count, self._locale.language)
        now = self._clock()
        if (
            self._text is not None
            and self._key == key
            and (now - self._timestamp) * 1000 < self.ttl_ms
        ):
            return self._text

        text = serialize_history(self._store.recent(count), self._locale, chars)
        self._text = text
        self._key = key
        self._timestamp = now
        return text
