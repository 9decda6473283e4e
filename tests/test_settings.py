"""Tests for the tunable settings state machines."""

from __future__ import annotations

import asyncio
from typing import Any
import unittest

from gemchat.locale import LocaleContext
from gemchat.settings import ChatSettings, bounded_int, boolean, choice, free_text
from gemchat.task_manager import TaskManager
from gemchat.view import ChatOutput, DisplayMessage


class _StatusView:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def render_message(self, message: DisplayMessage, *, scroll: bool) -> None:
        self.lines.append(message.text)

    def render_media(self, kind: str, data: str, mime_type: str, *, scroll: bool) -> None:
        pass

    def set_thinking(self, visible: bool) -> None:
        pass

    def set_generating(self, generating: bool) -> None:
        pass

    def clear(self) -> None:
        pass


class _SettingsBridge:
    def __init__(self, stored: dict[str, Any] | None = None, fail_writes: bool = False) -> None:
        self.stored = dict(stored or {})
        self.fail_writes = fail_writes
        self.writes: list[tuple[str, Any]] = []

    async def get_setting(self, key: str) -> Any:
        return self.stored.get(key)

    async def set_setting(self, key: str, value: Any) -> None:
        self.writes.append((key, value))
        if self.fail_writes:
            raise OSError("disk full")
        self.stored[key] = value


class NormalizerTests(unittest.TestCase):
    """Validate input normalization to the nearest valid value."""

    def test_choice(self) -> None:
        normalize = choice(("1:1", "16:9"), "1:1")
        self.assertEqual(normalize("16x9"), "16:9")
        self.assertEqual(normalize(" 16:9 "), "16:9")
        self.assertEqual(normalize("7:3"), "1:1")
        self.assertEqual(normalize(None), "1:1")

    def test_bounded_int(self) -> None:
        normalize = bounded_int(4, 8, 4)
        self.assertEqual(normalize("6s"), 6)
        self.assertEqual(normalize(99), 8)
        self.assertEqual(normalize("0"), 4)
        self.assertEqual(normalize("long"), 4)
        self.assertEqual(normalize(True), 4)

    def test_boolean(self) -> None:
        normalize = boolean(False)
        self.assertTrue(normalize("ON"))
        self.assertFalse(normalize("disable"))
        self.assertFalse(normalize("maybe"))
        self.assertTrue(normalize(True))

    def test_free_text(self) -> None:
        normalize = free_text(5)
        self.assertEqual(normalize("  minimal  "), "minim")
        self.assertEqual(normalize("Reset"), "")


class TunableSettingTests(unittest.IsolatedAsyncioTestCase):
    """Validate set, persist, load, and push behavior."""

    def _make(self, bridge: Any = None) -> ChatSettings:
        self.view = _StatusView()
        self.task_manager = TaskManager()
        return ChatSettings(
            output=ChatOutput(self.view),
            locale=LocaleContext(),
            task_manager=self.task_manager,
            bridge=bridge,
        )

    async def test_defaults(self) -> None:
        settings = self._make()
        self.assertEqual(settings.translate_mode.value, "literal")
        self.assertFalse(settings.web_search.value)
        self.assertEqual(settings.image_size.value, "1:1")
        self.assertEqual(settings.video_size.value, "16:9")
        self.assertEqual(settings.video_quality.value, "720p")
        self.assertEqual(settings.video_duration.value, 4)
        self.assertEqual(settings.slide_prompt.value, "")
        self.assertEqual(len(settings.all()), 11)

    async def test_setting_same_value_twice_persists_once(self) -> None:
        bridge = _SettingsBridge()
        settings = self._make(bridge)
        self.assertTrue(settings.image_count.set(2))
        self.assertFalse(settings.image_count.set("2"))
        await self.task_manager.await_all()
        self.assertEqual(bridge.writes, [("image_count", 2)])
        self.assertEqual(
            self.view.lines,
            ["Image count set to 2.", "Image count is already 2."],
        )

    async def test_invalid_input_falls_back_to_default(self) -> None:
        settings = self._make(_SettingsBridge())
        settings.image_size.set("16:9")
        settings.image_size.set("panorama")
        self.assertEqual(settings.image_size.value, "1:1")
        await self.task_manager.await_all()

    async def test_persist_failure_keeps_in_memory_value(self) -> None:
        bridge = _SettingsBridge(fail_writes=True)
        settings = self._make(bridge)
        with self.assertLogs("gemchat.settings", level="DEBUG") as logs:
            settings.video_quality.set("1080p")
            await self.task_manager.await_all()
        self.assertEqual(settings.video_quality.value, "1080p")
        self.assertTrue(any("settings.persist_failed" in line for line in logs.output))

    async def test_missing_bridge_keeps_defaults(self) -> None:
        settings = self._make(None)
        await settings.load_all()
        self.assertEqual(settings.slide_count.value, 1)
        settings.slide_count.set(3)
        await self.task_manager.await_all()
        self.assertEqual(settings.slide_count.value, 3)

    async def test_load_normalizes_stored_values(self) -> None:
        bridge = _SettingsBridge({"video_duration": "12", "web_search": "on", "image_size": "bogus"})
        settings = self._make(bridge)
        await settings.load_all()
        self.assertEqual(settings.video_duration.value, 8)
        self.assertTrue(settings.web_search.value)
        self.assertEqual(settings.image_size.value, "1:1")
        self.assertEqual(self.view.lines, [])

    async def test_status_lines(self) -> None:
        settings = self._make()
        self.assertEqual(
            settings.video_status(),
            "Video size: 16:9\nVideo quality: 720p\nVideo duration: 4s\nVideo count: 1",
        )
        self.assertIn("Slide prompt: (none)", settings.slide_status())
        settings.web_search.report()
        self.assertEqual(self.view.lines, ["Web search: off"])

    async def test_push_reports_only_real_changes(self) -> None:
        settings = self._make()
        self.assertFalse(settings.web_search.apply_push(False))
        self.assertTrue(settings.web_search.apply_push("on"))
        self.assertEqual(self.view.lines, ["Web search set to on."])

    async def test_translate_mode_echo_is_acknowledged_once(self) -> None:
        settings = self._make(_SettingsBridge())
        mode = settings.translate_mode
        self.assertTrue(mode.set("free"))
        self.assertEqual(mode.pending, "free")
        self.assertFalse(mode.apply_push("free"))
        self.assertIsNone(mode.pending)
        self.assertEqual(self.view.lines, ["Translate mode set to free."])

        self.assertTrue(mode.apply_push("literal"))
        self.assertEqual(self.view.lines[-1], "Translate mode set to literal.")
        await self.task_manager.await_all()

    async def test_translate_mode_unrelated_push_clears_pending(self) -> None:
        settings = self._make(_SettingsBridge())
        mode = settings.translate_mode
        mode.set("free")
        self.assertTrue(mode.apply_push("literal"))
        self.assertIsNone(mode.pending)
        await asyncio.sleep(0)
        await self.task_manager.await_all()


if __name__ == "__main__":
    unittest.main()
