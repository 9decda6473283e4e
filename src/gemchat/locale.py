"""Explicit UI locale context and localized string tables.

Every text-formatting and prompt-building call receives a ``LocaleContext``
instead of reading a module-level language global, so formatting stays a
pure function of its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_LANGUAGE = "en"
TONES = ("casual", "formal")

LANG_NAMES: dict[str, str] = {
    "en": "English",
    "ja": "Japanese",
    "es": "Spanish",
    "es-419": "Latin American Spanish",
    "zh-Hans": "Simplified Chinese",
    "zh-Hant": "Traditional Chinese",
    "hi": "Hindi",
    "pt-BR": "Brazilian Portuguese",
    "fr": "French",
    "de": "German",
    "ar": "Arabic",
    "ru": "Russian",
    "ko": "Korean",
    "id": "Indonesian",
    "vi": "Vietnamese",
    "th": "Thai",
    "it": "Italian",
    "tr": "Turkish",
}


@dataclass
class LocaleContext:
    """Current UI language and reply tone."""

    language: str = DEFAULT_LANGUAGE
    tone: str = "casual"

    def set_language(self, code: str | None) -> None:
        normalized = code.strip() if isinstance(code, str) else ""
        self.language = normalized or DEFAULT_LANGUAGE

    def set_tone(self, value: str | None) -> None:
        normalized = str(value or "casual").strip().lower()
        self.tone = "formal" if normalized == "formal" else "casual"

    @property
    def is_japanese(self) -> bool:
        return self.language == "ja"

    @property
    def language_name(self) -> str:
        return LANG_NAMES.get(self.language, "English")


_EN: dict[str, Any] = {
    "errorOccurred": "An error occurred",
    "apiUnavailable": "The generation backend is not available. Please restart the app.",
    "unexpectedResponse": "Unexpected response from API.",
    "thinking": "Thinking...",
    "canceled": "Generation canceled.",
    "historyCleared": "Chat history cleared.",
    "historyCompacted": "Compressed chat history with a summary.",
    "availableCommands": (
        "Available commands: /clear, /compact, /next, /contact, /help, /translate, "
        "/web, /image, /video, /slide"
    ),
    "noPreviousAI": "No previous AI message to continue.",
    "noHistory": "(No history)",
    "truncated": " …(truncated)",
    "identityAnswer": (
        "I'm the AI assistant built into this app. Ask me anything, or type / "
        "to see the available commands."
    ),
    "screenshotSummary": "Screenshot Summary",
    "screenshotDetails": "Screenshot Details",
    "sourcesHeading": "Sources",
    "translateNothing": "Nothing to translate. Add text or get an AI reply first.",
    "translateHelp": "Usage: /translate_<LANG> [text], /translate literal|free|status",
    "webHelp": "Usage: /web on|off|status",
    "imageHelp": "Usage: @image <prompt>, /image size|count|status",
    "videoHelp": "Usage: @video <prompt>, /video size|quality|duration|count|status",
    "slideHelp": "Usage: @slide <prompt>, /slide size|count|prompt|status",
    "contactUnavailable": "Opening links is not supported here.",
    "mediaUnsupported": "This backend cannot generate media.",
    "mediaFailed": lambda error: f"Media generation failed: {error}",
    "urlFetchFailed": lambda url, error: f"Could not read {url}: {error}",
    "attachmentFailed": lambda name, error: f"Could not read attachment {name}: {error}",
    "settingUpdated": lambda label, value: f"{label} set to {value}.",
    "settingAlready": lambda label, value: f"{label} is already {value}.",
    "settingStatus": lambda label, value: f"{label}: {value}",
    "label": {
        "translateMode": "Translate mode",
        "webSearch": "Web search",
        "imageSize": "Image size",
        "imageCount": "Image count",
        "videoSize": "Video size",
        "videoQuality": "Video quality",
        "videoDuration": "Video duration",
        "videoCount": "Video count",
        "slideSize": "Slide size",
        "slideCount": "Slide count",
        "slidePrompt": "Slide prompt",
    },
    "value": {
        "on": "on",
        "off": "off",
        "literal": "literal",
        "free": "free",
        "none": "(none)",
    },
    "role": {"user": "User", "assistant": "AI"},
}

_JA: dict[str, Any] = {
    "errorOccurred": "エラーが発生しました",
    "apiUnavailable": "生成バックエンドが利用できません。アプリを再起動してください。",
    "unexpectedResponse": "APIから予期しない応答が返されました。",
    "thinking": "考え中...",
    "canceled": "生成をキャンセルしました。",
    "historyCleared": "履歴をクリアしました。",
    "historyCompacted": "履歴を要約して圧縮しました。",
    "availableCommands": (
        "利用可能なコマンド: /clear, /compact, /next, /contact, /help, /translate, "
        "/web, /image, /video, /slide"
    ),
    "noPreviousAI": "直前のAIメッセージがありません。",
    "noHistory": "（履歴がありません）",
    "truncated": " …(一部省略)",
    "identityAnswer": (
        "私はこのアプリに組み込まれたAIアシスタントです。何でも質問するか、/ "
        "を入力してコマンドを確認してください。"
    ),
    "screenshotSummary": "スクリーンショットの概要",
    "screenshotDetails": "スクリーンショットの詳細",
    "sourcesHeading": "参考",
    "translateNothing": "翻訳する内容がありません。テキストを入力するか、先にAIの回答を取得してください。",
    "translateHelp": "使い方: /translate_<言語> [テキスト], /translate literal|free|status",
    "webHelp": "使い方: /web on|off|status",
    "imageHelp": "使い方: @image <プロンプト>, /image size|count|status",
    "videoHelp": "使い方: @video <プロンプト>, /video size|quality|duration|count|status",
    "slideHelp": "使い方: @slide <プロンプト>, /slide size|count|prompt|status",
    "contactUnavailable": "この環境ではリンクを開けません。",
    "mediaUnsupported": "このバックエンドはメディアを生成できません。",
    "mediaFailed": lambda error: f"メディア生成に失敗しました: {error}",
    "urlFetchFailed": lambda url, error: f"{url} を読み込めませんでした: {error}",
    "attachmentFailed": lambda name, error: f"添付ファイル {name} を読み込めませんでした: {error}",
    "settingUpdated": lambda label, value: f"{label}を{value}に設定しました。",
    "settingAlready": lambda label, value: f"{label}はすでに{value}です。",
    "settingStatus": lambda label, value: f"{label}: {value}",
    "label": {
        "translateMode": "翻訳モード",
        "webSearch": "Web検索",
        "imageSize": "画像サイズ",
        "imageCount": "画像の枚数",
        "videoSize": "動画サイズ",
        "videoQuality": "動画の画質",
        "videoDuration": "動画の長さ",
        "videoCount": "動画の本数",
        "slideSize": "スライドサイズ",
        "slideCount": "スライドの枚数",
        "slidePrompt": "スライドプロンプト",
    },
    "value": {
        "on": "オン",
        "off": "オフ",
        "literal": "直訳",
        "free": "意訳",
        "none": "（なし）",
    },
    "role": {"user": "ユーザー", "assistant": "AI"},
}

STRINGS: dict[str, dict[str, Any]] = {"en": _EN, "ja": _JA}


def get_text(ctx: LocaleContext, key: str, *args: Any) -> str:
    """Resolve a dotted string key for the context language.

    Falls back to English for unknown languages and to the key itself for
    unknown keys. Callable entries are invoked with ``args``.
    """
    strings = STRINGS.get(ctx.language, _EN)
    value: Any = strings
    for part in key.split("."):
        value = value.get(part) if isinstance(value, dict) else None
        if value is None:
            break
    if value is None and strings is not _EN:
        return get_text(LocaleContext(language=DEFAULT_LANGUAGE), key, *args)
    if callable(value):
        return str(value(*args))
    if isinstance(value, str):
        return value
    return key


def role_label(ctx: LocaleContext, role: str) -> str:
    """Return the transcript role label used in history serialization."""
    return get_text(ctx, f"role.{'assistant' if role == 'assistant' else 'user'}")
