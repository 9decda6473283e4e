"""Slash command autocomplete as a pure reducer.

Candidates are resolved through a declarative routing table: a list of
``(predicate, resolver)`` pairs checked in priority order, most specific
first. The keyboard contract is a reducer from ``(state, key)`` to a new
state plus an optional command to submit, so it runs without any widget.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

from .slash_commands import TRANSLATE_PREFIX, SlashCommandNode, SlashCommandRegistry

Predicate = Callable[[str], bool]
Resolver = Callable[[str], list[SlashCommandNode]]
Route = tuple[Predicate, Resolver]


def normalize_input(text: str) -> str:
    """Strip leading whitespace and lower-case; trailing space is significant."""
    return text.lstrip().lower()


def _filter(nodes: tuple[SlashCommandNode, ...], prefix: str) -> list[SlashCommandNode]:
    return [node for node in nodes if node.match.startswith(prefix)]


def _children_routes(parent: SlashCommandNode) -> list[Route]:
    expansion = parent.expansion

    def shows_all(text: str) -> bool:
        return text == expansion

    def filters(text: str) -> bool:
        return text.startswith(expansion)

    return [
        (shows_all, lambda _text: list(parent.children)),
        (filters, lambda text: _filter(parent.children, text)),
    ]


class AutocompleteEngine:
    """Resolve candidate lists for typed input."""

    def __init__(self, registry: SlashCommandRegistry | None = None) -> None:
        self.registry = registry or SlashCommandRegistry()
        self.routes = self._build_routes()

    def _build_routes(self) -> list[Route]:
        translate_targets = self.registry.translate_targets
        routes: list[Route] = [
            (
                lambda text: text == TRANSLATE_PREFIX,
                lambda _text: list(translate_targets),
            ),
            (
                lambda text: text.startswith(TRANSLATE_PREFIX),
                lambda text: _filter(translate_targets, text),
            ),
        ]
        for parent in self.registry.parents():
            routes.extend(_children_routes(parent))
        return routes

    def candidates(self, text: str) -> list[SlashCommandNode]:
        normalized = normalize_input(text)
        if not normalized.startswith("/"):
            return []
        for predicate, resolver in self.routes:
            if predicate(normalized):
                return resolver(normalized)
        return _filter(self.registry.commands, normalized)


@dataclass(frozen=True)
class AutocompleteState:
    """Input text, its candidate list, and the highlighted index."""

    text: str = ""
    candidates: tuple[SlashCommandNode, ...] = ()
    index: int = 0
    visible: bool = False

    @property
    def selected(self) -> SlashCommandNode | None:
        if not self.visible or not self.candidates:
            return None
        return self.candidates[self.index % len(self.candidates)]


@dataclass(frozen=True)
class KeyOutcome:
    """Result of feeding one key to the reducer.

    ``handled`` tells the front-end to swallow the key; ``submit`` carries a
    command to hand to the dispatcher.
    """

    state: AutocompleteState
    handled: bool = False
    submit: str | None = None


def update_input(engine: AutocompleteEngine, text: str) -> AutocompleteState:
    candidates = tuple(engine.candidates(text))
    return AutocompleteState(text=text, candidates=candidates, visible=bool(candidates))


def expand(engine: AutocompleteEngine, node: SlashCommandNode) -> AutocompleteState:
    """Rewrite the input to ``node``'s base token plus separator and recompute."""
    return update_input(engine, node.expansion)


def choose(engine: AutocompleteEngine, state: AutocompleteState, index: int) -> KeyOutcome:
    """Apply the candidate at ``index``: expand a parent or submit a leaf."""
    if not state.candidates:
        return KeyOutcome(state=state)
    node = state.candidates[index % len(state.candidates)]
    if node.has_children:
        return KeyOutcome(state=expand(engine, node), handled=True)
    return KeyOutcome(state=AutocompleteState(), handled=True, submit=node.key)


def handle_key(engine: AutocompleteEngine, state: AutocompleteState, key: str) -> KeyOutcome:
    """Apply the keyboard contract while the suggestion panel is visible."""
    if not state.visible or not state.candidates:
        return KeyOutcome(state=state)
    count = len(state.candidates)
    if key in ("down", "tab"):
        return KeyOutcome(state=replace(state, index=(state.index + 1) % count), handled=True)
    if key in ("up", "shift+tab"):
        return KeyOutcome(state=replace(state, index=(state.index - 1) % count), handled=True)
    if key == "right":
        node = state.selected
        if node is not None and node.has_children:
            return KeyOutcome(state=expand(engine, node), handled=True)
        return KeyOutcome(state=state)
    if key == "enter":
        return choose(engine, state, state.index)
    if key == "escape":
        return KeyOutcome(state=replace(state, visible=False), handled=True)
    return KeyOutcome(state=state)
