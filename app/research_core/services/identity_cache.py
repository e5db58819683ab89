"""
Purpose: Durable local cache of authenticated accounts plus the active one.
Lets a user hold several identities and switch without re-authenticating.

Invariants:
- Accounts are keyed by email; an upsert replaces (and moves to the end).
- The active account, if any, is a member of the cache.
- Persisted `token`/`user`/`accounts` are written together on every change.

Resetting the active thread on identity changes is the controller's job;
this class only owns identities.
"""

from __future__ import annotations
import logging
from dataclasses import replace
from typing import Optional, Union

from ..interfaces import SessionStore
from ..models import Account, PersistedSession

logger = logging.getLogger("research_core")


class UnknownAccountError(KeyError):
    """Raised when switching to an account that is not cached."""


class IdentityCache:
    def __init__(self, store: SessionStore):
        self.store = store
        self._accounts: dict[str, Account] = {}
        self._active_email: Optional[str] = None
        self._restore(store.load())

    def _restore(self, persisted: PersistedSession) -> None:
        for account in persisted.accounts:
            if account.email:
                self._accounts.pop(account.email, None)
                self._accounts[account.email] = account

        user = persisted.user
        repaired = False
        if user is not None and user.email:
            if user.email not in self._accounts:
                logger.warning(
                    f"[IdentityCache] Active user {user.email} missing from accounts; re-adding."
                )
                repaired = True
            self._accounts[user.email] = user
            self._active_email = user.email
        elif self._accounts:
            self._active_email = next(iter(self._accounts))
            repaired = True

        if persisted.token != self.token:
            repaired = True
        if repaired:
            self._persist()

    def _persist(self) -> None:
        self.store.save(
            PersistedSession(
                token=self.token,
                user=self.active,
                accounts=list(self._accounts.values()),
            )
        )

    @property
    def accounts(self) -> list[Account]:
        return list(self._accounts.values())

    @property
    def active(self) -> Optional[Account]:
        if self._active_email is None:
            return None
        return self._accounts.get(self._active_email)

    @property
    def token(self) -> str:
        active = self.active
        return active.token if active else ""

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def login(self, account: Account) -> Account:
        """Upsert the account by email and make it active."""
        if not (account.email or "").strip():
            raise ValueError("Account email is required.")
        self._accounts.pop(account.email, None)
        self._accounts[account.email] = account
        self._active_email = account.email
        self._persist()
        return account

    def switch_account(self, account: Union[Account, str]) -> Account:
        """Activate an already-cached account. Membership is not changed."""
        email = account if isinstance(account, str) else account.email
        if email not in self._accounts:
            raise UnknownAccountError(email)
        self._active_email = email
        self._persist()
        return self._accounts[email]

    def logout(self) -> Optional[Account]:
        """
        Drop the active account. Returns the account activated in its place,
        or None when the cache is now empty (guest session).
        """
        if self._active_email is not None:
            self._accounts.pop(self._active_email, None)
        self._active_email = None

        if self._accounts:
            return self.switch_account(next(iter(self._accounts)))

        self.store.clear()
        return None

    def update_profile(
        self, *, name: Optional[str] = None, profile_pic: Optional[str] = None
    ) -> Account:
        """Rewrite the active account's display fields; email and token stay."""
        active = self.active
        if active is None:
            raise UnknownAccountError("no active account")
        updated = replace(
            active,
            name=active.name if name is None else name,
            profile_pic=active.profile_pic if profile_pic is None else profile_pic,
        )
        self._accounts[active.email] = updated
        self._persist()
        return updated
