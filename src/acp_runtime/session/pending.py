"""Pending human decisions (permission prompts and diff proposals).

An agent callback that needs a human answer opens an entry here and
suspends on its future. The entry is resolved exactly once, by a UI
response, by its timer, or by session termination. Every path removes
the entry in the same step that settles the future, and every path other
than the timer itself cancels the timer.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from acp_runtime.errors import DecisionTimeoutError, PendingDecisionNotFoundError, RuntimeFault
from acp_runtime.logging import get_logger

log = get_logger("session.pending")


@dataclass
class PendingDecision:
    """One outstanding decision."""

    id: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None
    payload: dict[str, Any] = field(default_factory=dict)  # Event it was announced with


class PendingDecisionTable:
    """Outstanding decisions of one kind for one session."""

    def __init__(self, kind: str, timeout: float, timeout_message: str) -> None:
        self.kind = kind
        self.timeout = timeout
        self.timeout_message = timeout_message
        self._entries: dict[str, PendingDecision] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, decision_id: object) -> bool:
        return decision_id in self._entries

    def open(self) -> PendingDecision:
        """Create an entry with a fresh id and start its timer."""
        loop = asyncio.get_running_loop()
        decision = PendingDecision(id=str(uuid.uuid4()), future=loop.create_future())
        decision.timer = loop.call_later(self.timeout, self._expire, decision.id)
        self._entries[decision.id] = decision
        return decision

    async def wait(self, decision: PendingDecision) -> Any:
        """Suspend until the decision is settled.

        If the waiting task is cancelled the entry is discarded.
        """
        try:
            return await decision.future
        except asyncio.CancelledError:
            self._discard(decision.id)
            raise

    def resolve(self, decision_id: str, value: Any) -> None:
        """Settle a decision with the UI's answer.

        Raises:
            PendingDecisionNotFoundError: no such entry, including one that
                already timed out or was answered.
        """
        decision = self._entries.pop(decision_id, None)
        if decision is None:
            raise PendingDecisionNotFoundError(f"No pending {self.kind}: {decision_id}")
        _cancel_timer(decision)
        if not decision.future.done():
            decision.future.set_result(value)

    def reject_all(self, make_error: Callable[[], RuntimeFault]) -> int:
        """Fail every outstanding decision. Returns how many were rejected."""
        entries = list(self._entries.values())
        self._entries.clear()
        for decision in entries:
            _cancel_timer(decision)
            if not decision.future.done():
                decision.future.set_exception(make_error())
        if entries:
            log.debug("Rejected %d pending %s decision(s)", len(entries), self.kind)
        return len(entries)

    def payloads(self) -> list[dict[str, Any]]:
        return [dict(d.payload) for d in self._entries.values()]

    def _expire(self, decision_id: str) -> None:
        decision = self._entries.pop(decision_id, None)
        if decision is None:
            return
        decision.timer = None
        log.info("Pending %s %s timed out", self.kind, decision_id)
        if not decision.future.done():
            decision.future.set_exception(DecisionTimeoutError(self.timeout_message))

    def _discard(self, decision_id: str) -> None:
        decision = self._entries.pop(decision_id, None)
        if decision is not None:
            _cancel_timer(decision)


def _cancel_timer(decision: PendingDecision) -> None:
    if decision.timer is not None:
        decision.timer.cancel()
        decision.timer = None
