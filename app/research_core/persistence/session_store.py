"""
Purpose: Local storage of the identity cache (token, user, accounts).
Why: Accounts survive restarts, so switching between them never needs a
new login.

What is inside:
InMemorySessionStore with load/save/clear (tests, ephemeral hosts).
JsonFileSessionStore: one JSON document with the three keys.

Testing:
In-memory: simple state tests.
File: tmp_path fixture; corrupted-file and round-trip tests.
"""

from __future__ import annotations
import copy
import json
import logging
from pathlib import Path
from typing import Optional

from .. import config
from ..models import PersistedSession

logger = logging.getLogger("research_core")


class InMemorySessionStore:
    def __init__(self, initial: Optional[PersistedSession] = None) -> None:
        self._session = copy.deepcopy(initial) if initial else PersistedSession()

    def load(self) -> PersistedSession:
        return copy.deepcopy(self._session)

    def save(self, session: PersistedSession) -> None:
        self._session = copy.deepcopy(session)

    def clear(self) -> None:
        self._session = PersistedSession()


class JsonFileSessionStore:
    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path else config.SESSION_FILE

    def load(self) -> PersistedSession:
        if not self.path.exists():
            return PersistedSession()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(
                f"[SessionStore] Could not read {self.path}: {e}. Starting as guest."
            )
            return PersistedSession()
        if not isinstance(data, dict):
            logger.warning(f"[SessionStore] Unexpected content in {self.path}. Starting as guest.")
            return PersistedSession()
        return PersistedSession.from_dict(data)

    def save(self, session: PersistedSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f, ensure_ascii=False, indent=2)
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
