"""Domain exception hierarchy for the gemchat conversational core."""

from __future__ import annotations


class GemChatError(RuntimeError):
    """Base class for all domain-level chat errors."""


class GatewayError(GemChatError):
    """Raised when the generation backend fails for non-cancellation reasons."""


class GenerationCancelledError(GemChatError):
    """Raised by a bridge when an in-flight generation was cancelled."""

    def __init__(self, message: str = "CANCELLED: generation was cancelled") -> None:
        super().__init__(message)


class BridgeUnavailableError(GemChatError):
    """Raised when the host bridge or one of its methods is missing."""


class ConfigValidationError(GemChatError):
    """Raised when configuration cannot be validated safely."""


class PersistenceError(GemChatError):
    """Raised when settings cannot be read from or written to disk."""
