"""
Shared fixtures and fakes for the research_core test suite.

No test touches the network: the engine, syncer and controller run against
FakeResearchApi (an in-memory ResearchApi), and the real httpx client is
exercised through httpx.MockTransport in test_api_client.py.
"""

import json

import pytest

from research_core.controller import ResearchSessionController
from research_core.models import Account, PersistedSession
from research_core.persistence.session_store import InMemorySessionStore
from research_core.services.api_client import ApiError
from research_core.services.history_sync import HistorySyncer
from research_core.services.identity_cache import IdentityCache
from research_core.thread_engine import ThreadEngine

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sse(*contents: str) -> bytes:
    """Encode contents as `data: {"content": ...}` records, one per line."""
    return "".join(
        f"data: {json.dumps({'content': c})}\n" for c in contents
    ).encode("utf-8")


ALICE = Account(email="a@x", name="Alice", token="tok-a")
BOB = Account(email="b@x", name="Bob", token="tok-b")


class FakeResearchApi:
    """
    In-memory ResearchApi.

    - summaries / threads: what the server returns.
    - chunks: body of the next POST /ask.
    - fail: method names that raise ApiError.
    - fail_stream_after: raise ApiError after yielding that many chunks.
    - before_chunk: async hook awaited with the chunk index before yielding.
    - before_fetch_summaries / before_fetch_thread: async hooks awaited
      mid-request, to change state while a fetch is in flight.
    """

    def __init__(self):
        self.summaries: list[dict] = []
        self.threads: dict[str, list[dict]] = {}
        self.chunks: list[bytes] = []
        self.fail: set[str] = set()
        self.fail_stream_after = None
        self.before_chunk = None
        self.before_fetch_summaries = None
        self.before_fetch_thread = None
        self.calls: list[tuple] = []
        self.stream_closed = False
        self.yielded = 0

    def _maybe_fail(self, name):
        if name in self.fail:
            raise ApiError(f"{name} failed", status_code=500)

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]

    async def fetch_summaries(self, token):
        self.calls.append(("fetch_summaries", token))
        if self.before_fetch_summaries is not None:
            await self.before_fetch_summaries()
        self._maybe_fail("fetch_summaries")
        return [dict(s) for s in self.summaries]

    async def fetch_thread(self, token, chat_id):
        self.calls.append(("fetch_thread", token, chat_id))
        if self.before_fetch_thread is not None:
            await self.before_fetch_thread()
        self._maybe_fail("fetch_thread")
        return [dict(m) for m in self.threads.get(chat_id, [])]

    async def stream_answer(self, token, payload):
        self.calls.append(("stream_answer", token, payload))
        self.stream_closed = False
        try:
            self._maybe_fail("stream_answer")
            for i, chunk in enumerate(self.chunks):
                if self.fail_stream_after is not None and i >= self.fail_stream_after:
                    raise ApiError("connection reset")
                if self.before_chunk is not None:
                    await self.before_chunk(i)
                self.yielded += 1
                yield chunk
        finally:
            self.stream_closed = True

    async def rename_thread(self, token, chat_id, new_title):
        self.calls.append(("rename_thread", token, chat_id, new_title))
        self._maybe_fail("rename_thread")

    async def delete_thread(self, token, chat_id):
        self.calls.append(("delete_thread", token, chat_id))
        self._maybe_fail("delete_thread")

    async def clear_history(self, token):
        self.calls.append(("clear_history", token))
        self._maybe_fail("clear_history")


class Confirm:
    """Records confirmation prompts and answers with a fixed value."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def api():
    return FakeResearchApi()


@pytest.fixture
def confirm():
    return Confirm(True)


@pytest.fixture
def guest_store():
    return InMemorySessionStore()


@pytest.fixture
def two_account_store():
    """Accounts [a@x, b@x] with a@x active."""
    return InMemorySessionStore(
        PersistedSession(token=ALICE.token, user=ALICE, accounts=[ALICE, BOB])
    )


@pytest.fixture
def identity(two_account_store):
    return IdentityCache(two_account_store)


@pytest.fixture
def syncer(api, identity, confirm):
    return HistorySyncer(api, identity, confirm=confirm)


@pytest.fixture
def engine(api, syncer, identity):
    ids = iter(f"chat_{n}" for n in range(1, 100))
    return ThreadEngine(api, syncer, identity, chat_id_factory=lambda: next(ids))


@pytest.fixture
def controller(api, two_account_store, confirm):
    ids = iter(f"chat_{n}" for n in range(1, 100))
    return ResearchSessionController(
        api,
        two_account_store,
        confirm=confirm,
        context_mode="with_history",
        chat_id_factory=lambda: next(ids),
    )
