"""Session record and lifecycle state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from acp_runtime.logging import get_logger
from acp_runtime.session.pending import PendingDecisionTable

if TYPE_CHECKING:
    from acp_runtime.session.supervisor import AgentProcess
    from acp_runtime.transport.connection import JsonRpcConnection

log = get_logger("session")


class SessionStatus(str, Enum):
    INITIALIZING = "initializing"
    READY = "ready"
    PROMPTING = "prompting"
    ERROR = "error"
    TERMINATED = "terminated"


# Allowed moves; anything may move to TERMINATED except TERMINATED itself.
_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.INITIALIZING: frozenset(
        {SessionStatus.READY, SessionStatus.ERROR, SessionStatus.TERMINATED}
    ),
    SessionStatus.READY: frozenset({SessionStatus.PROMPTING, SessionStatus.TERMINATED}),
    SessionStatus.PROMPTING: frozenset({SessionStatus.READY, SessionStatus.TERMINATED}),
    SessionStatus.ERROR: frozenset({SessionStatus.TERMINATED}),
    SessionStatus.TERMINATED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in _TRANSITIONS[current]


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Session:
    """Controller-side state for one agent process."""

    id: str
    agent_type: str
    cwd: str
    decision_timeout: float = 300.0
    created_at: str = field(default_factory=_utc_now)
    status: SessionStatus = SessionStatus.INITIALIZING

    process: AgentProcess | None = None
    connection: JsonRpcConnection | None = None
    acp_session_id: str | None = None
    agent_info: dict[str, Any] | None = None

    cancelling: bool = False
    terminate_requested: bool = False

    permissions: PendingDecisionTable = field(init=False)
    diff_proposals: PendingDecisionTable = field(init=False)

    def __post_init__(self) -> None:
        self.permissions = PendingDecisionTable(
            "permission", self.decision_timeout, "Permission request timed out"
        )
        self.diff_proposals = PendingDecisionTable(
            "diff proposal", self.decision_timeout, "Diff proposal timed out"
        )

    @property
    def protocol_session_id(self) -> str:
        """Id used in protocol calls; the agent's own id once known."""
        return self.acp_session_id or self.id

    @property
    def is_terminated(self) -> bool:
        return self.status is SessionStatus.TERMINATED

    def transition_to(self, target: SessionStatus) -> bool:
        """Move to ``target`` if the state machine allows it.

        Returns:
            True if the status changed. Refused moves are logged, never raised.
        """
        if self.status is target:
            return False
        if not can_transition(self.status, target):
            log.debug(
                "Session %s: refusing transition %s -> %s",
                self.id,
                self.status.value,
                target.value,
            )
            return False
        log.debug("Session %s: %s -> %s", self.id, self.status.value, target.value)
        self.status = target
        return True

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentType": self.agent_type,
            "cwd": self.cwd,
            "status": self.status.value,
            "createdAt": self.created_at,
        }
