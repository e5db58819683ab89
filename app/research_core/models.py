"""
Canonical data shapes, shared truth for typing between layers.

Typical contents:
- Message / Thread (the active conversation, versioned and immutable).
- HistorySummary (one entry of the remote history list).
- Account / PersistedSession (locally cached identities).
- SessionState (process-wide state the UI renders).

Wire shapes use camelCase keys (chatId, displayQuestion, profilePic);
from_dict / to_dict translate at the boundary.

Testing: Mostly types. Thread.commit / with_chat_id carry the invariants.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"


class ContextMode(str, Enum):
    QUESTION_ONLY = "question_only"
    WITH_HISTORY = "with_history"


class ExchangeStatus(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    SETTLED = "settled"
    FAILED = "failed"


def _tier_or_default(raw: Any) -> Tier:
    try:
        return Tier(raw)
    except ValueError:
        return Tier.FREE


@dataclass(frozen=True)
class Message:
    question: str
    answer: str = ""
    chat_id: Optional[str] = None
    tier: Tier = Tier.FREE
    settled: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        """Messages fetched from the server are already settled."""
        return cls(
            question=str(data.get("question") or ""),
            answer=str(data.get("answer") or ""),
            chat_id=data.get("chatId"),
            tier=_tier_or_default(data.get("tier")),
            settled=True,
        )

    def to_dict(self) -> dict:
        return {
            "question": self.question,
            "answer": self.answer,
            "chatId": self.chat_id,
            "tier": self.tier.value,
        }


@dataclass(frozen=True)
class Thread:
    """
    Ordered, chronological messages of one conversation.

    Every change returns a new Thread with a bumped version, so a settle
    event computed against an older version cannot silently overwrite a
    newer one.
    """

    messages: tuple[Message, ...] = ()
    chat_id: Optional[str] = None
    version: int = 0

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)

    def __getitem__(self, index: int) -> Message:
        return self.messages[index]

    @classmethod
    def from_messages(cls, messages: list[Message], chat_id: Optional[str]) -> Thread:
        return cls(messages=tuple(messages), chat_id=chat_id)

    def with_chat_id(self, chat_id: str) -> Thread:
        """Assign the conversation id. Allowed once."""
        if self.chat_id is not None and self.chat_id != chat_id:
            raise ValueError(
                f"Thread already has chatId {self.chat_id!r}; cannot reassign."
            )
        return replace(self, chat_id=chat_id, version=self.version + 1)

    def append(self, message: Message) -> Thread:
        return replace(
            self, messages=self.messages + (message,), version=self.version + 1
        )

    def commit(
        self, index: int, answer: str, *, expected_version: Optional[int] = None
    ) -> Thread:
        """
        Settle the message at index with its final answer (single replace).
        With expected_version, refuse to commit onto a Thread that has changed
        since the caller last saw it.
        """
        if expected_version is not None and expected_version != self.version:
            raise ValueError(
                f"Thread is at version {self.version}, expected {expected_version}."
            )
        target = self.messages[index]
        if target.settled:
            raise ValueError(f"Message {index} is already settled.")
        messages = list(self.messages)
        messages[index] = replace(target, answer=answer, settled=True)
        return replace(self, messages=tuple(messages), version=self.version + 1)


@dataclass(frozen=True)
class HistorySummary:
    chat_id: Optional[str]
    display_question: str

    @classmethod
    def from_dict(cls, data: dict) -> HistorySummary:
        return cls(
            chat_id=data.get("chatId") or None,
            display_question=str(
                data.get("displayQuestion") or data.get("question") or ""
            ),
        )


@dataclass(frozen=True)
class Account:
    email: str
    name: str = ""
    token: str = ""
    profile_pic: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> Account:
        return cls(
            email=str(data.get("email") or ""),
            name=str(data.get("name") or ""),
            token=str(data.get("token") or ""),
            profile_pic=data.get("profilePic"),
        )

    def to_dict(self) -> dict:
        data = {"email": self.email, "name": self.name, "token": self.token}
        if self.profile_pic is not None:
            data["profilePic"] = self.profile_pic
        return data


@dataclass
class PersistedSession:
    """The three persisted keys: token, user, accounts."""

    token: str = ""
    user: Optional[Account] = None
    accounts: list[Account] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> PersistedSession:
        user = data.get("user")
        return cls(
            token=str(data.get("token") or ""),
            user=Account.from_dict(user) if isinstance(user, dict) else None,
            accounts=[
                Account.from_dict(a)
                for a in (data.get("accounts") or [])
                if isinstance(a, dict)
            ],
        )

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "user": self.user.to_dict() if self.user else None,
            "accounts": [a.to_dict() for a in self.accounts],
        }


@dataclass
class SessionState:
    thread: Thread = field(default_factory=Thread)

    # Confirmed conversation id; None until the first exchange settles
    # or a stored thread is opened.
    chat_id: Optional[str] = None

    live_answer: str = ""
    loading: bool = False
    status: ExchangeStatus = ExchangeStatus.IDLE
