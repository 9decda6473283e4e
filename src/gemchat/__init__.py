"""Top-level package for gemchat."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .app import ChatApp
    from .config import ensure_config_dir, load_config
    from .controller import ChatController
    from .exceptions import (
        BridgeUnavailableError,
        ConfigValidationError,
        GatewayError,
        GemChatError,
        GenerationCancelledError,
    )
    from .ollama_bridge import OllamaBridge
    from .session import GenerationSessionManager
    from .state import ConversationState
    from .transcript import TranscriptStore

__all__ = [
    "BridgeUnavailableError",
    "ChatApp",
    "ChatController",
    "ConfigValidationError",
    "ConversationState",
    "GatewayError",
    "GemChatError",
    "GenerationCancelledError",
    "GenerationSessionManager",
    "OllamaBridge",
    "TranscriptStore",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTIONS = {
    "BridgeUnavailableError",
    "ConfigValidationError",
    "GatewayError",
    "GemChatError",
    "GenerationCancelledError",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the core stays importable without the UI stack."""
    if name in {"ensure_config_dir", "load_config"}:
        from .config import ensure_config_dir, load_config

        return {"ensure_config_dir": ensure_config_dir, "load_config": load_config}[name]
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)
    if name == "ChatController":
        from .controller import ChatController

        return ChatController
    if name == "GenerationSessionManager":
        from .session import GenerationSessionManager

        return GenerationSessionManager
    if name == "ConversationState":
        from .state import ConversationState

        return ConversationState
    if name == "TranscriptStore":
        from .transcript import TranscriptStore

        return TranscriptStore
    if name == "OllamaBridge":
        from .ollama_bridge import OllamaBridge

        return OllamaBridge
    if name == "ChatApp":
        from .app import ChatApp

        return ChatApp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
