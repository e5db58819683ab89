"""
Purpose: Keep the local history summary cache in step with the server for
the active identity, and run the history mutations (open, rename, delete,
clear all).

Failure policy: the summary cache is only ever replaced wholesale by a
successful refresh. Failed refreshes and failed mutations are logged and
leave it at its last-known-good value; mutations report False so the
caller can tell nothing changed.
"""

from __future__ import annotations
import logging
from typing import Optional

from ..interfaces import Confirmer, ResearchApi
from ..models import HistorySummary, Message, Thread
from .api_client import ApiError
from .identity_cache import IdentityCache

logger = logging.getLogger("research_core")

CONFIRM_DELETE_THREAD = "Delete this chat thread?"
CONFIRM_CLEAR_HISTORY = "Delete all history?"


class NotAuthenticatedError(PermissionError):
    """Raised when a history operation needs an active session."""


def dedupe_summaries(summaries: list[HistorySummary]) -> list[HistorySummary]:
    """
    Keep the first entry per non-empty chatId, in server order.
    Entries without a chatId are always kept.
    """
    seen: set[str] = set()
    unique: list[HistorySummary] = []
    for item in summaries:
        if not item.chat_id:
            unique.append(item)
        elif item.chat_id not in seen:
            seen.add(item.chat_id)
            unique.append(item)
    return unique


def _deny(prompt: str) -> bool:
    return False


class HistorySyncer:
    def __init__(
        self,
        api: ResearchApi,
        identity: IdentityCache,
        *,
        confirm: Optional[Confirmer] = None,
    ):
        self.api = api
        self.identity = identity
        self.confirm: Confirmer = confirm or _deny
        self._summaries: list[HistorySummary] = []

    @property
    def summaries(self) -> list[HistorySummary]:
        """Raw cache, as last returned by the server."""
        return list(self._summaries)

    @property
    def visible_summaries(self) -> list[HistorySummary]:
        return dedupe_summaries(self._summaries)

    def reset(self) -> None:
        """Drop the local cache (guest session)."""
        self._summaries = []

    async def refresh_summaries(self) -> list[HistorySummary]:
        """Replace the cache with the server's list. No-op for guests."""
        account = self.identity.active
        if account is None or not account.token:
            return self.summaries
        try:
            raw = await self.api.fetch_summaries(account.token)
        except ApiError as e:
            logger.warning(f"[HistorySyncer] History fetch failed: {e}")
            return self.summaries

        if self.identity.active != account:
            logger.info("[HistorySyncer] Identity changed during refresh; result discarded.")
            return self.summaries

        self._summaries = [HistorySummary.from_dict(item) for item in raw]
        return self.summaries

    async def load_thread(self, chat_id: str) -> Thread:
        """Fetch the full thread for chat_id. Errors propagate to the caller."""
        if not self.identity.is_authenticated:
            raise NotAuthenticatedError("Sign in to open saved conversations.")
        raw = await self.api.fetch_thread(self.identity.token, chat_id)
        return Thread.from_messages([Message.from_dict(m) for m in raw], chat_id)

    async def rename_thread(self, chat_id: str, new_title: str) -> bool:
        title = (new_title or "").strip()
        if not title or not self.identity.is_authenticated:
            return False
        try:
            await self.api.rename_thread(self.identity.token, chat_id, title)
        except ApiError as e:
            logger.warning(f"[HistorySyncer] Rename of {chat_id} failed: {e}")
            return False
        await self.refresh_summaries()
        return True

    async def delete_thread(self, chat_id: str) -> bool:
        """Guests have no remote threads; nothing is asked or sent."""
        if not self.identity.is_authenticated:
            return False
        if not self.confirm(CONFIRM_DELETE_THREAD):
            return False
        try:
            await self.api.delete_thread(self.identity.token, chat_id)
        except ApiError as e:
            logger.warning(f"[HistorySyncer] Delete of {chat_id} failed: {e}")
            return False
        await self.refresh_summaries()
        return True

    async def clear_all_history(self) -> bool:
        """
        Bulk-delete remote history (authenticated only), then drop the local
        cache regardless. Returns False only when the user declined.
        """
        if not self.confirm(CONFIRM_CLEAR_HISTORY):
            return False
        if self.identity.is_authenticated:
            try:
                await self.api.clear_history(self.identity.token)
            except ApiError as e:
                logger.warning(f"[HistorySyncer] Clearing remote history failed: {e}")
        self.reset()
        return True
