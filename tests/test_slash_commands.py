"""Tests for the slash command registry and autocomplete reducer."""

from __future__ import annotations

import unittest

from gemchat.autocomplete import (
    AutocompleteEngine,
    AutocompleteState,
    choose,
    handle_key,
    normalize_input,
    update_input,
)
from gemchat.slash_commands import (
    TRANSLATE_CODES,
    SlashCommandRegistry,
    normalize_translate_code,
    translate_suffix,
)


def _keys(nodes: object) -> list[str]:
    return [node.key for node in nodes]  # type: ignore[attr-defined]


class RegistryTests(unittest.TestCase):
    """Validate the static command tree."""

    def setUp(self) -> None:
        self.registry = SlashCommandRegistry()

    def test_top_level_names(self) -> None:
        self.assertEqual(
            self.registry.top_level_names(),
            [
                "/clear",
                "/compact",
                "/next",
                "/contact",
                "/help",
                "/translate",
                "/web",
                "/image",
                "/video",
                "/slide",
            ],
        )

    def test_parents_sorted_most_specific_first(self) -> None:
        lengths = [len(node.expansion) for node in self.registry.parents()]
        self.assertEqual(lengths, sorted(lengths, reverse=True))
        self.assertIn("/video duration", _keys(self.registry.parents()))

    def test_find_is_case_insensitive_and_covers_translate_targets(self) -> None:
        node = self.registry.find("/IMAGE size 16:9")
        self.assertIsNotNone(node)
        assert node is not None
        self.assertEqual(node.value, "16:9")
        target = self.registry.find("/translate_zh-hant")
        self.assertIsNotNone(target)
        assert target is not None
        self.assertEqual(target.value, "zh-Hant")
        self.assertIsNone(self.registry.find("/nope"))

    def test_normalize_translate_code(self) -> None:
        self.assertEqual(normalize_translate_code("JA"), "ja")
        self.assertEqual(normalize_translate_code("pt-br"), "pt-BR")
        self.assertEqual(normalize_translate_code("zh-tw"), "zh-Hant")
        self.assertEqual(normalize_translate_code("zh-CN"), "zh-Hans")
        self.assertIsNone(normalize_translate_code("klingon"))
        self.assertIsNone(normalize_translate_code(""))

    def test_translate_suffix(self) -> None:
        self.assertEqual(translate_suffix("zh-Hans"), "ZH-HANS")
        self.assertEqual(translate_suffix("es-419"), "ES-419")


class AutocompleteEngineTests(unittest.TestCase):
    """Validate candidate routing for typed input."""

    def setUp(self) -> None:
        self.engine = AutocompleteEngine()

    def test_non_slash_input_has_no_candidates(self) -> None:
        self.assertEqual(self.engine.candidates("hello"), [])
        self.assertEqual(self.engine.candidates(""), [])

    def test_bare_slash_lists_top_level(self) -> None:
        self.assertEqual(len(self.engine.candidates("/")), 10)
        self.assertEqual(_keys(self.engine.candidates("  /tr")), ["/translate"])

    def test_video_with_space_lists_all_children(self) -> None:
        self.assertEqual(
            _keys(self.engine.candidates("/video ")),
            [
                "/video status",
                "/video size",
                "/video quality",
                "/video duration",
                "/video count",
            ],
        )

    def test_video_partial_filters_children(self) -> None:
        self.assertEqual(
            _keys(self.engine.candidates("/video s")),
            ["/video status", "/video size"],
        )

    def test_nested_values_resolve_before_parent(self) -> None:
        self.assertEqual(
            _keys(self.engine.candidates("/IMAGE SIZE ")),
            [
                "/image size auto",
                "/image size 1:1",
                "/image size 9:16",
                "/image size 16:9",
                "/image size 3:4",
                "/image size 4:3",
            ],
        )
        self.assertEqual(_keys(self.engine.candidates("/video count 3")), ["/video count 3"])

    def test_translate_underscore_lists_every_language(self) -> None:
        candidates = self.engine.candidates("/translate_")
        self.assertEqual(len(candidates), len(TRANSLATE_CODES))
        self.assertEqual(
            _keys(self.engine.candidates("/translate_zh")),
            ["/translate_ZH-HANS", "/translate_ZH-HANT"],
        )

    def test_translate_with_space_lists_modes(self) -> None:
        self.assertEqual(
            _keys(self.engine.candidates("/translate ")),
            ["/translate literal", "/translate free", "/translate status"],
        )

    def test_trailing_space_is_significant(self) -> None:
        self.assertEqual(normalize_input("  /Web "), "/web ")
        self.assertEqual(_keys(self.engine.candidates("/web")), ["/web"])
        self.assertEqual(len(self.engine.candidates("/web ")), 3)


class KeyboardContractTests(unittest.TestCase):
    """Validate the suggestion panel reducer."""

    def setUp(self) -> None:
        self.engine = AutocompleteEngine()

    def test_down_and_up_wrap_around(self) -> None:
        state = update_input(self.engine, "/")
        self.assertTrue(state.visible)
        outcome = handle_key(self.engine, state, "down")
        self.assertTrue(outcome.handled)
        self.assertEqual(outcome.state.index, 1)

        outcome = handle_key(self.engine, state, "up")
        self.assertEqual(outcome.state.index, len(state.candidates) - 1)

        outcome = handle_key(self.engine, outcome.state, "tab")
        self.assertEqual(outcome.state.index, 0)

    def test_right_expands_parent(self) -> None:
        state = update_input(self.engine, "/we")
        outcome = handle_key(self.engine, state, "right")
        self.assertTrue(outcome.handled)
        self.assertEqual(outcome.state.text, "/web ")
        self.assertEqual(len(outcome.state.candidates), 3)

    def test_right_on_leaf_is_not_handled(self) -> None:
        state = update_input(self.engine, "/clear")
        outcome = handle_key(self.engine, state, "right")
        self.assertFalse(outcome.handled)
        self.assertIs(outcome.state, state)

    def test_enter_on_leaf_submits_and_hides(self) -> None:
        state = update_input(self.engine, "/web o")
        outcome = handle_key(self.engine, state, "down")
        outcome = handle_key(self.engine, outcome.state, "enter")
        self.assertEqual(outcome.submit, "/web off")
        self.assertFalse(outcome.state.visible)

    def test_enter_on_parent_expands(self) -> None:
        state = update_input(self.engine, "/video du")
        outcome = handle_key(self.engine, state, "enter")
        self.assertIsNone(outcome.submit)
        self.assertEqual(outcome.state.text, "/video duration ")
        self.assertEqual(len(outcome.state.candidates), 5)

    def test_escape_hides_panel(self) -> None:
        state = update_input(self.engine, "/")
        outcome = handle_key(self.engine, state, "escape")
        self.assertTrue(outcome.handled)
        self.assertFalse(outcome.state.visible)
        self.assertIsNone(outcome.state.selected)

    def test_keys_ignored_when_hidden(self) -> None:
        state = AutocompleteState(text="hello")
        outcome = handle_key(self.engine, state, "enter")
        self.assertFalse(outcome.handled)
        self.assertIsNone(outcome.submit)

    def test_choose_by_index(self) -> None:
        state = update_input(self.engine, "/")
        outcome = choose(self.engine, state, 0)
        self.assertEqual(outcome.submit, "/clear")


if __name__ == "__main__":
    unittest.main()
