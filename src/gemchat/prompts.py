"""Prompt builders.

All builders are pure functions of their arguments and a ``LocaleContext``;
none of them read ambient language or tone state.
"""

from __future__ import annotations

from collections.abc import Sequence
import re

from .gateway import UrlContent
from .locale import LANG_NAMES, LocaleContext, get_text

MAX_EXPLAIN_CHARS = 8000
MAX_DETAILED_EXPLAIN_CHARS = 12000
MAX_ATTACHMENT_CHARS = 4000

URL_PATTERN = re.compile(r"https?://[^\s<>\"'）」]+", re.IGNORECASE)

# Patterns match the whole message; longer questions go to the backend.
IDENTITY_PATTERNS: dict[str, re.Pattern[str]] = {
    "en": re.compile(
        r"^(?:(?:hi|hello|hey)[,!]?\s+)?"
        r"(?:who\s+are\s+you|what\s+are\s+you|what(?:'s|\s+is)\s+your\s+name|"
        r"your\s+name|(?:please\s+)?introduce\s+yourself|which\s+(?:ai|model)\s+are\s+you)"
        r"\s*[?？!.。]*$",
        re.IGNORECASE,
    ),
    "ja": re.compile(
        r"^(?:あなた|君|きみ|お前)は(?:誰|だれ)(?:ですか|なの)?[?？。！!]*$"
        r"|^(?:あなたの)?名前は(?:何|なに|なん)?(?:ですか)?[?？。！!]*$"
        r"|^自己紹介(?:して(?:ください)?)?[?？。！!]*$"
        r"|^(?:あなたは)?(?:何の|どの)(?:AI|モデル)(?:ですか)?[?？。！!]*$"
    ),
}


def truncate_input(ctx: LocaleContext, text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + get_text(ctx, "truncated")


def tone_instruction(ctx: LocaleContext) -> str:
    if ctx.is_japanese:
        return "丁寧な敬語で回答してください。" if ctx.tone == "formal" else "親しみやすい自然な口調で回答してください。"
    if ctx.tone == "formal":
        return "Use a polite, formal tone."
    return "Use a friendly, conversational tone."


def language_instruction(ctx: LocaleContext) -> str:
    if ctx.is_japanese:
        return "日本語で回答してください。"
    return f"Respond in {ctx.language_name}."


def _instructions(ctx: LocaleContext) -> str:
    return f"{language_instruction(ctx)} {tone_instruction(ctx)}"


def is_identity_question(ctx: LocaleContext, text: str) -> bool:
    """Check the language-specific identity pattern, then the English one."""
    stripped = text.strip()
    if not stripped:
        return False
    pattern = IDENTITY_PATTERNS.get(ctx.language)
    if pattern is not None and pattern.search(stripped):
        return True
    return bool(IDENTITY_PATTERNS["en"].search(stripped))


def identity_answer(ctx: LocaleContext) -> str:
    return get_text(ctx, "identityAnswer")


def extract_urls(text: str, limit: int) -> list[str]:
    """Return up to ``limit`` distinct http(s) URLs in order of appearance."""
    urls: list[str] = []
    for match in URL_PATTERN.finditer(text):
        url = match.group(0).rstrip(".,;:!?)")
        if url not in urls:
            urls.append(url)
        if len(urls) >= limit:
            break
    return urls


def build_url_context(ctx: LocaleContext, contents: Sequence[tuple[str, UrlContent]]) -> str:
    blocks: list[str] = []
    for url, content in contents:
        if content.error or not content.text:
            continue
        body = content.text + (get_text(ctx, "truncated") if content.truncated else "")
        blocks.append(f"[Content of {content.final_url or url}]\n{body}")
    return "\n\n".join(blocks)


def build_chat_prompt(
    ctx: LocaleContext,
    message: str,
    history: str = "",
    *,
    url_context: str = "",
    attachments_text: str = "",
) -> str:
    """Build the prompt for a plain chat turn."""
    parts = [
        "You are a helpful desktop assistant. Answer the user's latest message "
        "using the conversation so far as context.",
        _instructions(ctx),
    ]
    if history:
        parts.append(f"Conversation so far:\n{history}")
    if url_context:
        parts.append(
            "The user referenced the following web pages. Use them when relevant:\n"
            f"{url_context}"
        )
    if attachments_text:
        parts.append(f"Attached files:\n{attachments_text}")
    parts.append(f"User message:\n{message}")
    return "\n\n".join(parts)


def build_attachment_text(name: str, text: str, ctx: LocaleContext) -> str:
    return f"--- {name} ---\n{truncate_input(ctx, text, MAX_ATTACHMENT_CHARS)}"


def build_explain_prompt(ctx: LocaleContext, text: str, *, detailed: bool = False) -> str:
    """Explain selected or copied text, briefly or in depth."""
    if detailed:
        body = truncate_input(ctx, text, MAX_DETAILED_EXPLAIN_CHARS)
        task = (
            "Explain the following text in detail. Cover its meaning, background, "
            "key terms, and anything the reader is likely to miss. Use headings "
            "and lists where they help."
        )
    else:
        body = truncate_input(ctx, text, MAX_EXPLAIN_CHARS)
        task = "Explain the following text concisely in two or three sentences."
    return f"{task}\n{_instructions(ctx)}\n\nText:\n{body}"


def build_screenshot_prompt(ctx: LocaleContext, *, detailed: bool = False) -> str:
    if detailed:
        task = (
            "Describe this screenshot in detail: what application or page it shows, "
            "the important text and elements, and what the user is likely trying "
            "to do. Point out errors or warnings if any are visible."
        )
    else:
        task = "Summarize what this screenshot shows in two or three sentences."
    return f"{task}\n{_instructions(ctx)}"


def screenshot_question(ctx: LocaleContext, *, detailed: bool = False) -> str:
    """Transcript echo shown for a screenshot shortcut."""
    return get_text(ctx, "screenshotDetails" if detailed else "screenshotSummary")


def build_summary_prompt(ctx: LocaleContext, history: str) -> str:
    """Summarize the conversation so it can replace the transcript."""
    conversation = history or get_text(ctx, "noHistory")
    return (
        "Summarize the following conversation so it can replace the full history "
        "as context for future turns. Keep decisions, facts, open questions, and "
        "the user's goals. Be concise.\n"
        f"{_instructions(ctx)}\n\nConversation:\n{conversation}"
    )


def build_continuation_prompt(ctx: LocaleContext, last_assistant: str, history: str = "") -> str:
    parts = [
        "Continue your previous answer from exactly where it stopped. Do not "
        "repeat what was already written.",
        _instructions(ctx),
    ]
    if history:
        parts.append(f"Conversation so far:\n{history}")
    parts.append(f"Previous answer:\n{last_assistant}")
    return "\n\n".join(parts)


def build_translation_prompt(ctx: LocaleContext, text: str, target_code: str, mode: str) -> str:
    """Translate ``text`` into ``target_code`` using the literal or free style."""
    target = LANG_NAMES.get(target_code, target_code)
    if mode == "free":
        style = (
            "Translate freely: convey the meaning naturally, adapting idioms and "
            "sentence structure so it reads like it was written in the target language."
        )
    else:
        style = (
            "Translate literally: stay as close to the original wording and "
            "structure as the target language allows."
        )
    return (
        f"Translate the following text into {target}. {style} "
        "Output only the translation.\n\n"
        f"Text:\n{truncate_input(ctx, text, MAX_EXPLAIN_CHARS)}"
    )


def build_slide_prompt(ctx: LocaleContext, topic: str, custom_prompt: str = "") -> str:
    parts = [
        "Create a single presentation slide image about the topic below. Use a "
        "clear title, a few short bullet points, and a clean, legible layout.",
        f"Write the slide text in {ctx.language_name}.",
    ]
    if custom_prompt:
        parts.append(f"Additional instructions: {custom_prompt}")
    parts.append(f"Topic:\n{topic}")
    return "\n\n".join(parts)
