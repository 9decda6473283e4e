"""Tests for domain exception hierarchy."""

from __future__ import annotations

import unittest

from gemchat.exceptions import (
    BridgeUnavailableError,
    ConfigValidationError,
    GatewayError,
    GemChatError,
    GenerationCancelledError,
    PersistenceError,
)


class ExceptionHierarchyTests(unittest.TestCase):
    """Validate exception inheritance contract."""

    def test_exception_hierarchy(self) -> None:
        self.assertTrue(issubclass(GemChatError, RuntimeError))
        self.assertTrue(issubclass(GatewayError, GemChatError))
        self.assertTrue(issubclass(GenerationCancelledError, GemChatError))
        self.assertTrue(issubclass(BridgeUnavailableError, GemChatError))
        self.assertTrue(issubclass(ConfigValidationError, GemChatError))
        self.assertTrue(issubclass(PersistenceError, GemChatError))

    def test_cancelled_error_message_carries_marker(self) -> None:
        self.assertIn("CANCELLED", str(GenerationCancelledError()))
        self.assertEqual(str(GenerationCancelledError("stopped")), "stopped")


if __name__ == "__main__":
    unittest.main()
