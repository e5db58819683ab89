"""
Abstractions for pluggable services. Inversion of control: the core
depends on interfaces, not on httpx or on a particular storage backend.

Common protocols:
- ResearchApi: the remote question/answer + history service.
- SessionStore.load() / save(session) / clear(): persisted identities.
- Confirmer(prompt) -> bool: explicit user confirmation for destructive calls.
- RequestFactory.build_ask_payload(...) -> dict

Testing: Use simple fake implementations to test the engine and
controller without network calls.
"""

from __future__ import annotations
from collections.abc import AsyncIterator
from typing import Optional, Protocol

from .models import ContextMode, PersistedSession, Thread, Tier


class ResearchApi(Protocol):
    async def fetch_summaries(self, token: str) -> list[dict]: ...

    async def fetch_thread(self, token: str, chat_id: str) -> list[dict]: ...

    def stream_answer(self, token: str, payload: dict) -> AsyncIterator[bytes]:
        """Raw response body chunks of POST /ask, as delivered."""
        ...

    async def rename_thread(self, token: str, chat_id: str, new_title: str) -> None: ...

    async def delete_thread(self, token: str, chat_id: str) -> None: ...

    async def clear_history(self, token: str) -> None: ...


class SessionStore(Protocol):
    def load(self) -> PersistedSession: ...

    def save(self, session: PersistedSession) -> None: ...

    def clear(self) -> None: ...


class Confirmer(Protocol):
    def __call__(self, prompt: str) -> bool: ...


class RequestFactory(Protocol):
    def build_ask_payload(
        self,
        *,
        question: str,
        chat_id: str,
        tier: Tier,
        thread: Thread,
        context: ContextMode,
    ) -> dict: ...

    def assemble_context(
        self, *, thread: Thread, question: Optional[str] = None
    ) -> list[dict[str, str]]: ...
