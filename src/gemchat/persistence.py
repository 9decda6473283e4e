"""Settings persistence for the bundled host bridge."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .exceptions import PersistenceError


class SettingsPersistence:
    """Store tunable settings as a flat JSON object in a private file."""

    def __init__(self, path: str) -> None:
        self.path = Path(path).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_parent(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._enforce_permissions(self.path.parent, 0o700)

    def load(self) -> dict[str, Any]:
        """Return stored settings; a missing or corrupt file reads as empty."""
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Write one key, keeping the others."""
        payload = self.load()
        payload[key] = value
        try:
            self._ensure_parent()
            self.path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise PersistenceError(f"Could not write settings to {self.path}: {exc}") from exc
        self._enforce_permissions(self.path)
