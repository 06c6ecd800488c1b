"""Typed events published by the runtime.

Each model carries its event name and dumps to the camelCase payload sent
to attached UIs.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class EventName:
    """Event names as delivered to UIs."""

    SESSION_STATUS = "acp://session-status"
    MESSAGE_CHUNK = "acp://message-chunk"
    TOOL_CALL = "acp://tool-call"
    TOOL_RESULT = "acp://tool-result"
    DIFF = "acp://diff"
    PLAN_UPDATE = "acp://plan-update"
    PERMISSION_REQUEST = "acp://permission-request"
    DIFF_PROPOSAL = "acp://diff-proposal"
    PROMPT_COMPLETE = "acp://prompt-complete"
    ERROR = "acp://error"

    ALL: ClassVar[tuple[str, ...]] = (
        SESSION_STATUS,
        MESSAGE_CHUNK,
        TOOL_CALL,
        TOOL_RESULT,
        DIFF,
        PLAN_UPDATE,
        PERMISSION_REQUEST,
        DIFF_PROPOSAL,
        PROMPT_COMPLETE,
        ERROR,
    )


class RuntimeEvent(BaseModel):
    """Base class for published events."""

    model_config = ConfigDict(populate_by_name=True)

    event: ClassVar[str]

    session_id: str = Field(alias="sessionId")

    def payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class SessionStatusEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.SESSION_STATUS

    status: str
    agent_info: dict[str, Any] | None = Field(default=None, alias="agentInfo")
    error: str | None = None


class MessageChunkEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.MESSAGE_CHUNK

    text: str
    is_thought: bool | None = Field(default=None, alias="isThought")


class ToolCallEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.TOOL_CALL

    tool_call_id: str = Field(alias="toolCallId")
    title: str = ""
    kind: str | None = None
    status: str | None = None


class ToolResultEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.TOOL_RESULT

    tool_call_id: str = Field(alias="toolCallId")
    status: str | None = None


class DiffEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.DIFF

    tool_call_id: str = Field(alias="toolCallId")
    path: str
    old_text: str = Field(alias="oldText")
    new_text: str = Field(alias="newText")


class PlanUpdateEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.PLAN_UPDATE

    entries: list[dict[str, Any]]


class PermissionRequestEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.PERMISSION_REQUEST

    request_id: str = Field(alias="requestId")
    tool_call: dict[str, Any] = Field(alias="toolCall")
    options: list[dict[str, Any]]


class DiffProposalEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.DIFF_PROPOSAL

    proposal_id: str = Field(alias="proposalId")
    path: str
    old_text: str = Field(alias="oldText")
    new_text: str = Field(alias="newText")


class PromptCompleteEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.PROMPT_COMPLETE

    stop_reason: str = Field(default="end_turn", alias="stopReason")


class ErrorEvent(RuntimeEvent):
    event: ClassVar[str] = EventName.ERROR

    error: str
