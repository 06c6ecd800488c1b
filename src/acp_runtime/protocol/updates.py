"""Typed ``session/update`` notifications.

Agents send loosely shaped update payloads, sometimes with more than one
spelling for the same field. Parsing here produces one typed variant per
update kind with a single canonical field set, so nothing downstream has
to know about the alternatives.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, Field, ValidationError

from acp_runtime.logging import get_logger
from acp_runtime.protocol.messages import AcpModel

log = get_logger("protocol.updates")


class DiffContent(AcpModel):
    """A file diff embedded in tool call content."""

    path: str = ""
    old_text: str = Field(default="", validation_alias=AliasChoices("oldText", "old_text"))
    new_text: str = Field(default="", validation_alias=AliasChoices("newText", "new_text"))


class AgentMessageChunk(AcpModel):
    session_update: Literal["agent_message_chunk"] = Field(alias="sessionUpdate")
    content: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str | None:
        return _content_text(self.content)


class AgentThoughtChunk(AcpModel):
    session_update: Literal["agent_thought_chunk"] = Field(alias="sessionUpdate")
    content: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str | None:
        return _content_text(self.content)


class ToolCallStart(AcpModel):
    session_update: Literal["tool_call"] = Field(alias="sessionUpdate")
    tool_call_id: str = Field(validation_alias=AliasChoices("toolCallId", "tool_call_id"))
    title: str = ""
    kind: str | None = None
    status: str | None = None
    content: list[Any] | None = None

    @property
    def diffs(self) -> list[DiffContent]:
        return extract_diffs(self.content)


class ToolCallProgress(AcpModel):
    session_update: Literal["tool_call_update"] = Field(alias="sessionUpdate")
    tool_call_id: str = Field(validation_alias=AliasChoices("toolCallId", "tool_call_id"))
    title: str | None = None
    kind: str | None = None
    status: str | None = None
    content: list[Any] | None = None

    @property
    def diffs(self) -> list[DiffContent]:
        return extract_diffs(self.content)


class PlanUpdate(AcpModel):
    session_update: Literal["plan"] = Field(alias="sessionUpdate")
    entries: list[dict[str, Any]] = Field(default_factory=list)


SessionUpdate = AgentMessageChunk | AgentThoughtChunk | ToolCallStart | ToolCallProgress | PlanUpdate

_UPDATE_TYPES: dict[str, type[AcpModel]] = {
    "agent_message_chunk": AgentMessageChunk,
    "agent_thought_chunk": AgentThoughtChunk,
    "tool_call": ToolCallStart,
    "tool_call_update": ToolCallProgress,
    "plan": PlanUpdate,
}


def parse_session_update(params: dict[str, Any]) -> SessionUpdate | None:
    """Parse ``session/update`` params into a typed update.

    Returns None for update kinds the runtime does not republish and for
    payloads that fail validation.
    """
    update = params.get("update")
    if not isinstance(update, dict):
        log.debug("session/update without an update object")
        return None

    kind = update.get("sessionUpdate")
    model = _UPDATE_TYPES.get(kind) if isinstance(kind, str) else None
    if model is None:
        log.debug("Ignoring session update kind %r", kind)
        return None

    try:
        return model.model_validate(update)  # type: ignore[return-value]
    except ValidationError as e:
        log.warning("Malformed %s update: %s", kind, e.errors()[:1])
        return None


def extract_diffs(content: list[Any] | None) -> list[DiffContent]:
    """Pull diff blocks out of tool call content.

    A block counts as a diff when it is typed ``diff``, carries a ``path``,
    or wraps a nested ``diff`` object.
    """
    if not content:
        return []

    diffs: list[DiffContent] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        nested = block.get("diff")
        if isinstance(nested, dict):
            candidate = nested
        elif block.get("type") == "diff" or "path" in block:
            candidate = block
        else:
            continue
        try:
            diffs.append(DiffContent.model_validate(candidate))
        except ValidationError as e:
            log.debug("Skipping malformed diff block: %s", e.errors()[:1])
    return diffs


def _content_text(content: dict[str, Any]) -> str | None:
    if content.get("type") == "text" and isinstance(content.get("text"), str):
        return content["text"]
    return None
