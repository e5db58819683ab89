"""
Purpose: Run one question/answer exchange against the active thread.

Per exchange: Idle -> Sending -> Streaming -> Settled (or Failed).
- Sending: allocate the thread's chatId if it has none, append an
  unsettled placeholder Message, clear the live answer, loading = True.
- Streaming: every delta is appended to the live answer and republished.
  The placeholder is not touched per delta.
- Settled: the whole answer is committed into the placeholder in one
  replace, the live answer is cleared, chatId is confirmed, and history
  summaries are refreshed.
- Failed: the live answer shows ERROR_NOTICE; the placeholder stays
  unsettled and empty. No retry. An unexpected exception (a failing
  on_update callback, cancellation) also leaves the exchange Failed
  before it propagates, so loading never stays set.

At most one exchange runs at a time: ask() while loading raises
ExchangeInFlightError. Anything that replaces the active thread bumps a
generation counter; an exchange started under an older generation stops
reading and applies nothing.
"""

from __future__ import annotations
import logging
import time
from collections.abc import Callable
from contextlib import aclosing
from typing import Optional

from .interfaces import RequestFactory, ResearchApi
from .models import (
    ContextMode,
    ExchangeStatus,
    Message,
    SessionState,
    Thread,
    Tier,
)
from .prompts import DefaultRequestFactory
from .services.api_client import ApiError
from .services.history_sync import HistorySyncer
from .services.identity_cache import IdentityCache
from .services.stream_decoder import decode_stream

logger = logging.getLogger("research_core")

ERROR_NOTICE = "Error. The answer could not be retrieved."


class ExchangeInFlightError(RuntimeError):
    """Raised when a question is submitted while another is still loading."""


def timestamp_chat_id() -> str:
    return f"chat_{int(time.time() * 1000)}"


class ThreadEngine:
    def __init__(
        self,
        api: ResearchApi,
        history: HistorySyncer,
        identity: IdentityCache,
        *,
        context_mode: ContextMode = ContextMode.WITH_HISTORY,
        requests: Optional[RequestFactory] = None,
        chat_id_factory: Callable[[], str] = timestamp_chat_id,
        on_update: Optional[Callable[[SessionState], None]] = None,
    ):
        self.api = api
        self.history = history
        self.identity = identity
        self.context_mode = context_mode
        self.requests: RequestFactory = requests or DefaultRequestFactory()
        self.chat_id_factory = chat_id_factory
        self.on_update = on_update
        self.state = SessionState()
        self._generation = 0

    def _publish(self) -> None:
        if self.on_update is not None:
            self.on_update(self.state)

    def _replace_thread(self, thread: Thread, chat_id: Optional[str]) -> None:
        self._generation += 1
        self.state = SessionState(thread=thread, chat_id=chat_id)
        self._publish()

    def reset(self) -> None:
        """Empty thread, no chatId, no live answer. Independent of the network."""
        self._replace_thread(Thread(), None)

    new_conversation = reset

    async def load_thread(self, chat_id: str) -> Optional[Thread]:
        """
        Replace the active thread with the stored one. Errors propagate.
        Returns None, and installs nothing, when the active thread was
        replaced (identity change, new conversation) while fetching.
        """
        generation = self._generation
        thread = await self.history.load_thread(chat_id)
        if generation != self._generation:
            logger.info(f"[ThreadEngine] Thread {chat_id} arrived after a replace; discarded.")
            return None
        self._replace_thread(thread, chat_id)
        return thread

    def _mark_failed(self) -> None:
        self.state.live_answer = ERROR_NOTICE
        self.state.loading = False
        self.state.status = ExchangeStatus.FAILED

    async def ask(
        self, question: str, tier: Tier = Tier.FREE
    ) -> Optional[ExchangeStatus]:
        """
        Run one exchange. Returns SETTLED or FAILED, or None when nothing
        was applied (blank question, or the thread was replaced mid-stream).
        Any other exception propagates, with the exchange marked FAILED.
        """
        text = (question or "").strip()
        if not text:
            return None
        if self.state.loading:
            raise ExchangeInFlightError("Wait for the current answer to finish.")

        thread = self.state.thread
        if thread.chat_id is None:
            thread = thread.with_chat_id(self.chat_id_factory())
        payload = self.requests.build_ask_payload(
            question=text,
            chat_id=thread.chat_id,
            tier=tier,
            thread=thread,
            context=self.context_mode,
        )
        thread = thread.append(Message(question=text, chat_id=thread.chat_id, tier=tier))
        index = len(thread) - 1
        generation = self._generation

        self.state.thread = thread
        self.state.live_answer = ""
        self.state.loading = True
        self.state.status = ExchangeStatus.SENDING

        answer = ""
        try:
            self._publish()
            try:
                async with aclosing(
                    self.api.stream_answer(self.identity.token, payload)
                ) as chunks, aclosing(decode_stream(chunks)) as deltas:
                    async for delta in deltas:
                        if generation != self._generation:
                            logger.info("[ThreadEngine] Thread replaced mid-stream; exchange discarded.")
                            return None
                        answer += delta
                        self.state.live_answer = answer
                        self.state.status = ExchangeStatus.STREAMING
                        self._publish()
            except ApiError as e:
                if generation != self._generation:
                    return None
                logger.warning(f"[ThreadEngine] Exchange for {thread.chat_id} failed: {e}")
                self._mark_failed()
                self._publish()
                return ExchangeStatus.FAILED

            if generation != self._generation:
                return None

            self.state.thread = self.state.thread.commit(
                index, answer, expected_version=thread.version
            )
            self.state.live_answer = ""
            self.state.loading = False
            if self.state.chat_id is None:
                self.state.chat_id = thread.chat_id
            self.state.status = ExchangeStatus.SETTLED
            self._publish()
        finally:
            if generation == self._generation and self.state.loading:
                logger.warning(f"[ThreadEngine] Exchange for {thread.chat_id} aborted.")
                self._mark_failed()

        await self.history.refresh_summaries()
        return ExchangeStatus.SETTLED
