"""
Purpose: The single orchestration point for the client. Owns the identity
cache, the history syncer and the thread engine, and keeps the three views
(live answer, active thread, history list) consistent across identity
changes.

Key responsibilities:
- startup(): restore cached identities, refresh summaries when signed in.
- login / switch_account / logout: change identity, reset the active
  thread, hand the new credentials to the history syncer.
- ask / open_thread / new_conversation: delegate to the thread engine.
- rename / delete / clear: delegate to the history syncer.

Testing: Pure unit tests with a fake ResearchApi and InMemorySessionStore.
"""

from __future__ import annotations
from collections.abc import Callable
from typing import Optional, Union

from . import config
from .interfaces import Confirmer, ResearchApi, SessionStore
from .models import (
    Account,
    ContextMode,
    ExchangeStatus,
    HistorySummary,
    SessionState,
    Thread,
    Tier,
)
from .services.history_sync import HistorySyncer
from .services.identity_cache import IdentityCache
from .thread_engine import ThreadEngine, timestamp_chat_id


class ResearchSessionController:
    def __init__(
        self,
        api: ResearchApi,
        store: SessionStore,
        *,
        confirm: Optional[Confirmer] = None,
        context_mode: Union[ContextMode, str] = config.CONTEXT_MODE,
        chat_id_factory: Callable[[], str] = timestamp_chat_id,
        on_update: Optional[Callable[[SessionState], None]] = None,
    ):
        self.identity = IdentityCache(store)
        self.history = HistorySyncer(api, self.identity, confirm=confirm)
        self.engine = ThreadEngine(
            api,
            self.history,
            self.identity,
            context_mode=ContextMode(context_mode),
            chat_id_factory=chat_id_factory,
            on_update=on_update,
        )

    @property
    def state(self) -> SessionState:
        return self.engine.state

    @property
    def active_account(self) -> Optional[Account]:
        return self.identity.active

    @property
    def accounts(self) -> list[Account]:
        return self.identity.accounts

    @property
    def summaries(self) -> list[HistorySummary]:
        """De-duplicated history list, ready for display."""
        return self.history.visible_summaries

    def can_send(self) -> bool:
        """The send affordance is disabled while an answer is loading."""
        return not self.state.loading

    async def startup(self) -> None:
        if self.identity.is_authenticated:
            await self.history.refresh_summaries()

    # IDENTITY
    async def login(self, account: Account) -> Account:
        account = self.identity.login(account)
        await self._identity_changed()
        return account

    async def switch_account(self, account: Union[Account, str]) -> Account:
        account = self.identity.switch_account(account)
        await self._identity_changed()
        return account

    async def logout(self) -> Optional[Account]:
        """Sign out the active account; falls back to the next cached one."""
        account = self.identity.logout()
        await self._identity_changed()
        return account

    def update_profile(
        self, *, name: Optional[str] = None, profile_pic: Optional[str] = None
    ) -> Account:
        return self.identity.update_profile(name=name, profile_pic=profile_pic)

    async def _identity_changed(self) -> None:
        self.engine.reset()
        self.history.reset()
        await self.history.refresh_summaries()

    # CONVERSATION
    async def ask(
        self, question: str, tier: Union[Tier, str] = config.DEFAULT_TIER
    ) -> Optional[ExchangeStatus]:
        return await self.engine.ask(question, Tier(tier))

    async def open_thread(self, chat_id: str) -> Optional[Thread]:
        return await self.engine.load_thread(chat_id)

    def new_conversation(self) -> None:
        self.engine.new_conversation()

    # HISTORY
    async def refresh_history(self) -> list[HistorySummary]:
        await self.history.refresh_summaries()
        return self.summaries

    async def rename_thread(self, chat_id: str, new_title: str) -> bool:
        return await self.history.rename_thread(chat_id, new_title)

    async def delete_thread(self, chat_id: str) -> bool:
        deleted = await self.history.delete_thread(chat_id)
        if deleted and self.state.thread.chat_id == chat_id:
            self.engine.new_conversation()
        return deleted

    async def clear_all_history(self) -> bool:
        cleared = await self.history.clear_all_history()
        if cleared:
            self.engine.new_conversation()
        return cleared
