"""Host bridge backed by a local Ollama server.

Text and vision generation go through ``ollama.AsyncClient.chat``. Backend
calls run as named tasks in a ``TaskManager`` so that ``cancel_ai`` can abort
them; the awaiting caller then sees ``GenerationCancelledError``.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable, Coroutine
import itertools
import logging
import mimetypes
from pathlib import Path
import re
from typing import Any
import webbrowser

from bs4 import BeautifulSoup
import httpx
from markdownify import markdownify

from .exceptions import BridgeUnavailableError, GenerationCancelledError
from .persistence import SettingsPersistence
from .task_manager import TaskManager

try:
    from ollama import AsyncClient as _AsyncClient
except ModuleNotFoundError:  # pragma: no cover - exercised only in missing dependency environments.
    _AsyncClient = None  # type: ignore[misc,assignment]

LOGGER = logging.getLogger(__name__)

BACKEND_TASK_PREFIX = "backend:"
MAX_RESPONSE_BYTES = 5 * 1024 * 1024
_BLANK_LINES = re.compile(r"\n{3,}")
_HTML_TYPES = {"text/html", "application/xhtml+xml"}
_STRIPPED_TAGS = ("script", "style", "noscript", "template", "svg", "iframe")


class OllamaBridge:
    """Implement the host bridge contract on top of Ollama and httpx."""

    def __init__(
        self,
        host: str,
        model: str,
        *,
        vision_model: str = "",
        timeout: int = 120,
        settings: SettingsPersistence | None = None,
        client: Any | None = None,
        task_manager: TaskManager | None = None,
        http_client_factory: Callable[..., httpx.AsyncClient] = httpx.AsyncClient,
    ) -> None:
        self.host = host
        self.model = model
        self.vision_model = vision_model
        self.timeout = timeout
        self.settings = settings
        self.task_manager = task_manager or TaskManager()
        self.http_client_factory = http_client_factory
        self._ids = itertools.count(1)

        if client is not None:
            self._client = client
        elif _AsyncClient is not None:
            self._client = _AsyncClient(host=host, timeout=timeout)
        else:
            raise BridgeUnavailableError(
                "The ollama package is not installed. Install dependencies with pip install -e ."
            )

    @staticmethod
    def _generation_options(config: dict[str, Any] | None) -> dict[str, Any]:
        """Map generation config keys onto Ollama runtime options."""
        if not config:
            return {}
        mapping = {
            "temperature": "temperature",
            "top_k": "top_k",
            "top_p": "top_p",
            "max_output_tokens": "num_predict",
        }
        return {target: config[source] for source, target in mapping.items() if source in config}

    @staticmethod
    def _extract_text(response: Any) -> str:
        message = getattr(response, "message", None)
        if message is not None:
            content = getattr(message, "content", None)
            if isinstance(content, str):
                return content
        if isinstance(response, dict):
            message = response.get("message")
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
            if isinstance(response.get("response"), str):
                return response["response"]
        return ""

    async def _run_backend(self, coro: Coroutine[Any, Any, Any]) -> Any:
        """Await a backend call as a cancellable named task."""
        task = self.task_manager.spawn(coro, name=f"{BACKEND_TASK_PREFIX}{next(self._ids)}")
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            raise GenerationCancelledError() from None

    async def _chat(self, model: str, message: dict[str, Any], options: dict[str, Any]) -> dict[str, Any]:
        if options.get("use_web_search"):
            LOGGER.debug(
                "bridge.web_search_unsupported",
                extra={"event": "bridge.web_search_unsupported", "model": model},
            )
        response = await self._run_backend(
            self._client.chat(
                model=model,
                messages=[message],
                options=self._generation_options(options.get("generation_config")),
            )
        )
        return {"text": self._extract_text(response), "sources": []}

    async def generate_text(self, prompt: str, options: dict[str, Any]) -> dict[str, Any]:
        model = options.get("model") or self.model
        return await self._chat(model, {"role": "user", "content": prompt}, options)

    async def generate_with_image(
        self, prompt: str, image_base64: str, mime_type: str, options: dict[str, Any]
    ) -> dict[str, Any]:
        model = self.vision_model or options.get("model") or self.model
        message = {"role": "user", "content": prompt, "images": [image_base64]}
        return await self._chat(model, message, options)

    async def generate_image_from_text(self, prompt: str, options: dict[str, Any]) -> dict[str, Any]:
        return {"error": f"Model {self.model!r} on {self.host} cannot generate images."}

    async def generate_video_from_text(self, prompt: str, options: dict[str, Any]) -> dict[str, Any]:
        return {"error": f"Model {self.model!r} on {self.host} cannot generate videos."}

    async def fetch_url_content(self, url: str, options: dict[str, Any]) -> dict[str, Any]:
        """Fetch ``url`` and return its readable text as markdown."""
        target = url.strip()
        if not (target.startswith("http://") or target.startswith("https://")):
            return {"error": "Invalid URL scheme."}
        max_length = max(1, int(options.get("max_length", 5000)))
        timeout_sec = max(1.0, float(options.get("timeout_ms", 10000)) / 1000)
        headers = {
            "Accept": "text/html;q=1.0, application/xhtml+xml;q=0.9, text/plain;q=0.8, */*;q=0.1",
            "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) gemchat",
        }
        try:
            async with self.http_client_factory(timeout=timeout_sec, follow_redirects=True) as client:
                response = await client.get(target, headers=headers)
                response.raise_for_status()
                data = await response.aread()
        except httpx.HTTPError as exc:
            return {"error": str(exc) or type(exc).__name__}

        if len(data) > MAX_RESPONSE_BYTES:
            return {"error": "Response too large."}

        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        text = data.decode(response.encoding or "utf-8", errors="replace")
        if content_type in _HTML_TYPES or (not content_type and "<html" in text[:1000].lower()):
            soup = BeautifulSoup(text, "html.parser")
            for tag in soup(_STRIPPED_TAGS):
                tag.decompose()
            text = markdownify(str(soup), heading_style="atx", bullets="-")
        elif content_type and not content_type.startswith("text/") and "json" not in content_type:
            return {"error": f"Unsupported content type: {content_type}"}

        body = _BLANK_LINES.sub("\n\n", text).strip()
        truncated = len(body) > max_length
        return {
            "text": body[:max_length],
            "truncated": truncated,
            "final_url": str(response.url),
        }

    async def read_file_base64(self, path: str) -> dict[str, Any]:
        target = Path(path).expanduser()
        try:
            data = await asyncio.to_thread(target.read_bytes)
        except OSError as exc:
            return {"error": str(exc)}
        mime_type = mimetypes.guess_type(target.name)[0] or "application/octet-stream"
        return {"data": base64.b64encode(data).decode("ascii"), "mime_type": mime_type}

    async def read_file_text(self, path: str, max_chars: int) -> dict[str, Any]:
        target = Path(path).expanduser()
        try:
            text = await asyncio.to_thread(target.read_text, encoding="utf-8", errors="replace")
        except OSError as exc:
            return {"error": str(exc)}
        return {"text": text[:max_chars], "truncated": len(text) > max_chars}

    async def open_external(self, url: str) -> dict[str, Any]:
        opened = await asyncio.to_thread(webbrowser.open, url)
        return {"ok": bool(opened)}

    async def cancel_ai(self) -> None:
        count = self.task_manager.cancel_named(BACKEND_TASK_PREFIX)
        LOGGER.info(
            "bridge.cancel",
            extra={"event": "bridge.cancel", "cancelled_tasks": count},
        )

    async def get_setting(self, key: str) -> Any:
        if self.settings is None:
            return None
        return await asyncio.to_thread(self.settings.get, key)

    async def set_setting(self, key: str, value: Any) -> None:
        if self.settings is None:
            raise BridgeUnavailableError("Settings persistence is not configured.")
        await asyncio.to_thread(self.settings.set, key, value)
