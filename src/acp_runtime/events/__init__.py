"""Runtime events and the bus that delivers them."""

from acp_runtime.events.bus import EventBus, EventSink
from acp_runtime.events.models import (
    DiffEvent,
    DiffProposalEvent,
    ErrorEvent,
    EventName,
    MessageChunkEvent,
    PermissionRequestEvent,
    PlanUpdateEvent,
    PromptCompleteEvent,
    RuntimeEvent,
    SessionStatusEvent,
    ToolCallEvent,
    ToolResultEvent,
)

__all__ = [
    "DiffEvent",
    "DiffProposalEvent",
    "ErrorEvent",
    "EventBus",
    "EventName",
    "EventSink",
    "MessageChunkEvent",
    "PermissionRequestEvent",
    "PlanUpdateEvent",
    "PromptCompleteEvent",
    "RuntimeEvent",
    "SessionStatusEvent",
    "ToolCallEvent",
    "ToolResultEvent",
]
