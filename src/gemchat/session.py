"""Generation session arbitration: request tokens, cancellation, and settling.

Exactly one generation is "current" at a time. Every flow that talks to the
backend first calls :meth:`GenerationSessionManager.begin` and later reports
back with the token it was given; results carrying any other token are
dropped without a trace.
"""

from __future__ import annotations

import logging
from typing import Any

from .gateway import GenerationResult, bridge_method, is_cancellation_error
from .locale import LocaleContext, get_text
from .state import ConversationState
from .transcript import TranscriptStore
from .view import ChatOutput

LOGGER = logging.getLogger(__name__)


class GenerationSessionManager:
    """Own the single outstanding generation request."""

    def __init__(
        self,
        store: TranscriptStore,
        output: ChatOutput,
        locale: LocaleContext,
        bridge: Any = None,
    ) -> None:
        self.store = store
        self.output = output
        self.locale = locale
        self.bridge = bridge
        self._token = 0
        self.cancel_requested = False
        self._state = ConversationState.IDLE
        self._cancel_count = 0

    @property
    def current_token(self) -> int:
        return self._token

    @property
    def cancel_count(self) -> int:
        """Number of cancellations so far; lets callers detect a cancel since a point in time."""
        return self._cancel_count

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def is_generating(self) -> bool:
        return self._state == ConversationState.GENERATING

    def begin(self) -> int:
        """Start a new generation and return its token.

        Any earlier token stops being current, so a late result for it is
        ignored.
        """
        self._token += 1
        self.cancel_requested = False
        self._state = ConversationState.GENERATING
        self.output.generating(True)
        self.output.thinking(True)
        LOGGER.debug(
            "session.begin", extra={"event": "session.begin", "token": self._token}
        )
        return self._token

    def is_current(self, token: int) -> bool:
        return token == self._token and not self.cancel_requested

    def _settle(self, state: ConversationState) -> None:
        self._state = state
        self.output.thinking(False)
        self.output.generating(False)

    def accept(self, token: int) -> bool:
        """Settle ``token`` if it is still current and report whether to use its result.

        Media flows call this directly because their results are rendered
        rather than stored.
        """
        if not self.is_current(token):
            return False
        self._settle(ConversationState.IDLE)
        return True

    def complete(self, token: int, result: GenerationResult) -> bool:
        """Append ``result`` to the transcript unless it is stale or cancelled."""
        if not self.accept(token):
            return False
        self.store.append_assistant(result.text)
        self.output.assistant(result.text, result.sources)
        return True

    def fail(self, token: int, exc: BaseException) -> bool:
        """Handle a failed generation; return True when an error was shown."""
        if token != self._token:
            return False
        if self.cancel_requested or is_cancellation_error(exc):
            if self.is_generating:
                self._settle(ConversationState.CANCELLED)
            return False
        self._settle(ConversationState.ERROR)
        LOGGER.warning(
            "session.failed",
            extra={
                "event": "session.failed",
                "token": token,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        self.output.error(f"{get_text(self.locale, 'errorOccurred')}: {exc}")
        return True

    def release(self, token: int) -> None:
        """Return to idle if ``token`` is still generating.

        Flows call this from ``finally`` so that an aborted await never
        leaves the stop affordance visible.
        """
        if token == self._token and self.is_generating:
            self._settle(ConversationState.IDLE)

    def invalidate(self) -> None:
        """Drop the current generation silently, e.g. when history is cleared."""
        self._token += 1
        if self.is_generating:
            self._settle(ConversationState.IDLE)

    async def cancel(self) -> bool:
        """Cancel the current generation.

        Local effects are immediate: the token is bumped, the generating
        state is cleared, and a "canceled" status is shown. The backend is
        then asked to stop on a best-effort basis. Returns False when
        nothing was generating.
        """
        if not self.is_generating:
            return False
        self.cancel_requested = True
        cancelled_token = self._token
        self._token += 1
        self._cancel_count += 1
        self._settle(ConversationState.CANCELLED)
        self.output.status(get_text(self.locale, "canceled"))
        LOGGER.info(
            "session.cancelled",
            extra={"event": "session.cancelled", "token": cancelled_token},
        )
        try:
            await bridge_method(self.bridge, "cancel_ai")()
        except Exception as exc:  # noqa: BLE001 - backend cancel is best-effort
            LOGGER.debug(
                "session.cancel_ai_failed",
                extra={
                    "event": "session.cancel_ai_failed",
                    "error_type": type(exc).__name__,
                },
            )
        return True
