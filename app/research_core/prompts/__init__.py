"""One request builder for every ask, parameterized by context mode."""

from __future__ import annotations
from typing import Optional
from research_core.models import ContextMode, Thread, Tier
from .common import assemble as _assemble
from .common import prior_turns as _prior_turns


class DefaultRequestFactory:
    def build_ask_payload(
        self,
        *,
        question: str,
        chat_id: str,
        tier: Tier,
        thread: Thread,
        context: ContextMode = ContextMode.WITH_HISTORY,
    ) -> dict:
        """
        Body for POST /ask. `thread` is the conversation before the new
        question is appended.
        """
        payload = {"question": question, "chatId": chat_id, "tier": tier.value}
        if context is ContextMode.WITH_HISTORY:
            payload["messages"] = self.assemble_context(thread=thread, question=question)
        return payload

    def assemble_context(
        self, *, thread: Thread, question: Optional[str] = None
    ) -> list[dict[str, str]]:
        if question is None:
            return _prior_turns(thread)
        return _assemble(thread=thread, question=question)
