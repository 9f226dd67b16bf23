"""Durable client-local key/value storage (session token)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_KEY = "amzpulse_token"
_FILENAME = "local_storage.json"


class TokenStorage:
    """JSON file holding the session token under ``amzpulse_token``."""

    def __init__(self, state_dir: str | Path) -> None:
        self.path = Path(state_dir).expanduser() / _FILENAME

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Local storage unreadable, starting empty: %s", exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def load(self) -> str | None:
        return self._read().get(TOKEN_KEY) or None

    def save(self, token: str) -> None:
        data = self._read()
        data[TOKEN_KEY] = token
        self._write(data)

    def clear(self) -> None:
        data = self._read()
        if data.pop(TOKEN_KEY, None) is not None:
            self._write(data)


class MemoryStorage:
    """In-process stand-in with the same interface, for tests and one-shot CLI runs."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
