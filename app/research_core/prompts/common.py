"""Shared building blocks for the POST /ask body."""

from __future__ import annotations
from research_core.models import Thread


def prior_turns(thread: Thread) -> list[dict[str, str]]:
    """
    Alternating user/assistant entries for every settled message.
    Unsettled placeholders (in flight or failed) contribute nothing.
    """
    turns: list[dict[str, str]] = []
    for msg in thread:
        if not msg.settled:
            continue
        turns.append({"role": "user", "content": msg.question})
        turns.append({"role": "assistant", "content": msg.answer})
    return turns


def assemble(*, thread: Thread, question: str) -> list[dict[str, str]]:
    return [
        *prior_turns(thread),
        {"role": "user", "content": question},
    ]
