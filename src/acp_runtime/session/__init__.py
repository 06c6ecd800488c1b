"""Agent sessions: process supervision, protocol callbacks and lifecycle."""

from acp_runtime.session.client import AgentClientHandler
from acp_runtime.session.manager import AgentSessionManager
from acp_runtime.session.pending import PendingDecision, PendingDecisionTable
from acp_runtime.session.registry import SessionRegistry
from acp_runtime.session.schema import Session, SessionStatus, can_transition
from acp_runtime.session.supervisor import AgentProcess

__all__ = [
    "AgentClientHandler",
    "AgentProcess",
    "AgentSessionManager",
    "PendingDecision",
    "PendingDecisionTable",
    "Session",
    "SessionRegistry",
    "SessionStatus",
    "can_transition",
]
