"""Tests for the Ollama-backed host bridge."""

from __future__ import annotations

import asyncio
import base64
from pathlib import Path
import tempfile
from typing import Any
import unittest

import httpx

from gemchat.exceptions import BridgeUnavailableError, GenerationCancelledError
from gemchat.ollama_bridge import OllamaBridge
from gemchat.persistence import SettingsPersistence


class _FakeMessage:
    def __init__(self, content: str) -> None:
        self.content = content


class _FakeResponse:
    def __init__(self, content: str) -> None:
        self.message = _FakeMessage(content)


class _FakeChatClient:
    def __init__(self, reply: str = "hello", block: bool = False) -> None:
        self.reply = reply
        self.block = block
        self.calls: list[dict[str, Any]] = []
        self.started = asyncio.Event()

    async def chat(self, **kwargs: Any) -> _FakeResponse:
        self.calls.append(kwargs)
        self.started.set()
        if self.block:
            await asyncio.Event().wait()
        return _FakeResponse(self.reply)


def _mock_factory(handler: Any) -> Any:
    def factory(**kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    return factory


class OllamaBridgeGenerationTests(unittest.IsolatedAsyncioTestCase):
    """Validate chat calls and cancellation."""

    async def test_generate_text_maps_options(self) -> None:
        client = _FakeChatClient("answer")
        bridge = OllamaBridge("http://localhost:11434", "llama3.2", client=client)
        result = await bridge.generate_text(
            "prompt",
            {
                "model": "",
                "generation_config": {"temperature": 0.3, "max_output_tokens": 256},
                "use_web_search": False,
            },
        )
        self.assertEqual(result, {"text": "answer", "sources": []})
        call = client.calls[0]
        self.assertEqual(call["model"], "llama3.2")
        self.assertEqual(call["messages"], [{"role": "user", "content": "prompt"}])
        self.assertEqual(call["options"], {"temperature": 0.3, "num_predict": 256})

    async def test_generate_with_image_prefers_vision_model(self) -> None:
        client = _FakeChatClient("a cat")
        bridge = OllamaBridge(
            "http://localhost:11434", "llama3.2", vision_model="llava", client=client
        )
        await bridge.generate_with_image("what is this", "QUJD", "image/png", {})
        call = client.calls[0]
        self.assertEqual(call["model"], "llava")
        self.assertEqual(call["messages"][0]["images"], ["QUJD"])

    async def test_dict_responses_are_supported(self) -> None:
        self.assertEqual(OllamaBridge._extract_text({"message": {"content": "x"}}), "x")
        self.assertEqual(OllamaBridge._extract_text({"response": "y"}), "y")
        self.assertEqual(OllamaBridge._extract_text(None), "")

    async def test_cancel_ai_aborts_in_flight_call(self) -> None:
        client = _FakeChatClient(block=True)
        bridge = OllamaBridge("http://localhost:11434", "llama3.2", client=client)
        pending = asyncio.create_task(bridge.generate_text("prompt", {}))
        await client.started.wait()
        await bridge.cancel_ai()
        with self.assertRaises(GenerationCancelledError):
            await pending
        self.assertEqual(bridge.task_manager.pending_count, 0)

    async def test_media_generation_reports_unsupported(self) -> None:
        bridge = OllamaBridge("http://localhost:11434", "llama3.2", client=_FakeChatClient())
        image = await bridge.generate_image_from_text("a cat", {})
        video = await bridge.generate_video_from_text("a cat", {})
        self.assertIn("error", image)
        self.assertIn("error", video)


class OllamaBridgeFetchTests(unittest.IsolatedAsyncioTestCase):
    """Validate URL fetching through httpx."""

    async def test_html_is_converted_to_markdown(self) -> None:
        html = (
            "<html><head><style>body{}</style><script>alert(1)</script></head>"
            "<body><h1>Title</h1><p>Hello <b>world</b></p></body></html>"
        )

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=html, headers={"content-type": "text/html; charset=utf-8"})

        bridge = OllamaBridge(
            "http://localhost:11434",
            "llama3.2",
            client=_FakeChatClient(),
            http_client_factory=_mock_factory(handler),
        )
        result = await bridge.fetch_url_content("https://example.com/page", {"max_length": 5000})
        self.assertIn("# Title", result["text"])
        self.assertIn("Hello **world**", result["text"])
        self.assertNotIn("alert", result["text"])
        self.assertFalse(result["truncated"])
        self.assertEqual(result["final_url"], "https://example.com/page")

    async def test_long_text_is_truncated(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="a" * 50, headers={"content-type": "text/plain"})

        bridge = OllamaBridge(
            "http://localhost:11434",
            "llama3.2",
            client=_FakeChatClient(),
            http_client_factory=_mock_factory(handler),
        )
        result = await bridge.fetch_url_content("https://example.com/a.txt", {"max_length": 10})
        self.assertEqual(result["text"], "a" * 10)
        self.assertTrue(result["truncated"])

    async def test_http_errors_and_bad_input_return_error_payloads(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/binary":
                return httpx.Response(200, content=b"\x00\x01", headers={"content-type": "image/png"})
            return httpx.Response(404, text="missing")

        bridge = OllamaBridge(
            "http://localhost:11434",
            "llama3.2",
            client=_FakeChatClient(),
            http_client_factory=_mock_factory(handler),
        )
        self.assertIn("error", await bridge.fetch_url_content("https://example.com/nope", {}))
        self.assertIn("error", await bridge.fetch_url_content("https://example.com/binary", {}))
        self.assertEqual(
            await bridge.fetch_url_content("ftp://example.com", {}),
            {"error": "Invalid URL scheme."},
        )


class OllamaBridgeFileAndSettingsTests(unittest.IsolatedAsyncioTestCase):
    """Validate file reads and settings storage."""

    async def test_read_files(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            image = Path(temp_dir) / "shot.png"
            image.write_bytes(b"PNGDATA")
            notes = Path(temp_dir) / "notes.txt"
            notes.write_text("0123456789", encoding="utf-8")
            bridge = OllamaBridge("http://localhost:11434", "llama3.2", client=_FakeChatClient())

            payload = await bridge.read_file_base64(str(image))
            self.assertEqual(base64.b64decode(payload["data"]), b"PNGDATA")
            self.assertEqual(payload["mime_type"], "image/png")
            self.assertEqual(
                await bridge.read_file_text(str(notes), 4), {"text": "0123", "truncated": True}
            )
            missing = await bridge.read_file_text(str(Path(temp_dir) / "gone.txt"), 4)
            self.assertIn("error", missing)

    async def test_settings_round_trip_through_persistence(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            persistence = SettingsPersistence(str(Path(temp_dir) / "settings.json"))
            bridge = OllamaBridge(
                "http://localhost:11434", "llama3.2", client=_FakeChatClient(), settings=persistence
            )
            self.assertIsNone(await bridge.get_setting("image_count"))
            await bridge.set_setting("image_count", 3)
            self.assertEqual(await bridge.get_setting("image_count"), 3)

    async def test_set_setting_without_persistence_raises(self) -> None:
        bridge = OllamaBridge("http://localhost:11434", "llama3.2", client=_FakeChatClient())
        self.assertIsNone(await bridge.get_setting("image_count"))
        with self.assertRaises(BridgeUnavailableError):
            await bridge.set_setting("image_count", 2)


if __name__ == "__main__":
    unittest.main()
