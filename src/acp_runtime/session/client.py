"""Callbacks an agent may invoke on the runtime.

One AgentClientHandler serves one session's protocol connection: it
answers permission prompts and file requests, gating writes on a human
decision, and republishes session updates as runtime events.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from acp_runtime.errors import DecisionRejectedError, ProtocolError
from acp_runtime.events import (
    DiffEvent,
    DiffProposalEvent,
    EventBus,
    MessageChunkEvent,
    PermissionRequestEvent,
    PlanUpdateEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from acp_runtime.logging import TRACE, get_logger
from acp_runtime.protocol import (
    AgentMessageChunk,
    AgentThoughtChunk,
    PermissionRequest,
    PlanUpdate,
    ReadTextFileRequest,
    ToolCallProgress,
    ToolCallStart,
    WriteTextFileRequest,
    parse_session_update,
    selected_outcome,
)
from acp_runtime.session.schema import Session
from acp_runtime.transport.connection import INVALID_PARAMS, METHOD_NOT_FOUND

log = get_logger("session.client")


class AgentClientHandler:
    """Client side of the agent protocol for one session."""

    def __init__(self, session: Session, bus: EventBus) -> None:
        self.session = session
        self.bus = bus
        self._requests = {
            "session/request_permission": self.request_permission,
            "fs/read_text_file": self.read_text_file,
            "fs/write_text_file": self.write_text_file,
        }

    async def handle_request(self, method: str, params: dict[str, Any]) -> Any:
        handler = self._requests.get(method)
        if handler is None:
            raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")
        return await handler(params)

    async def handle_notification(self, method: str, params: dict[str, Any]) -> None:
        if method == "session/update":
            self.session_update(params)
        else:
            log.log(TRACE, "Ignoring notification %s from session %s", method, self.session.id)

    # --- requests ---

    async def request_permission(self, params: dict[str, Any]) -> dict[str, Any]:
        request = _parse(PermissionRequest, params)
        table = self.session.permissions

        decision = table.open()
        event = PermissionRequestEvent(
            session_id=self.session.id,
            request_id=decision.id,
            tool_call=request.tool_call,
            options=[o.model_dump(by_alias=True, exclude_none=True) for o in request.options],
        )
        decision.payload = event.payload()
        self.bus.publish(event)

        option_id = await table.wait(decision)
        return selected_outcome(option_id)

    async def read_text_file(self, params: dict[str, Any]) -> dict[str, Any]:
        request = _parse(ReadTextFileRequest, params)
        content = await asyncio.to_thread(self._resolve(request.path).read_text, encoding="utf-8")

        if request.line is not None or request.limit is not None:
            lines = content.splitlines(keepends=True)
            start = max((request.line or 1) - 1, 0)
            end = start + request.limit if request.limit is not None else None
            content = "".join(lines[start:end])

        return {"content": content}

    async def write_text_file(self, params: dict[str, Any]) -> dict[str, Any]:
        request = _parse(WriteTextFileRequest, params)
        path = self._resolve(request.path)
        try:
            old_text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            old_text = ""

        table = self.session.diff_proposals
        decision = table.open()
        event = DiffProposalEvent(
            session_id=self.session.id,
            proposal_id=decision.id,
            path=str(path),
            old_text=old_text,
            new_text=request.content,
        )
        decision.payload = event.payload()
        self.bus.publish(event)

        accepted = await table.wait(decision)
        if not accepted:
            raise DecisionRejectedError("File write rejected by user")

        await asyncio.to_thread(path.write_text, request.content, encoding="utf-8")
        log.info("Wrote %s for session %s", path, self.session.id)
        return {}

    # --- notifications ---

    def session_update(self, params: dict[str, Any]) -> None:
        """Republish one ``session/update`` as runtime events."""
        update = parse_session_update(params)
        if update is None:
            return

        sid = self.session.id
        if isinstance(update, AgentMessageChunk):
            if update.text is not None:
                self.bus.publish(MessageChunkEvent(session_id=sid, text=update.text))
        elif isinstance(update, AgentThoughtChunk):
            if update.text is not None:
                self.bus.publish(MessageChunkEvent(session_id=sid, text=update.text, is_thought=True))
        elif isinstance(update, ToolCallStart):
            self.bus.publish(
                ToolCallEvent(
                    session_id=sid,
                    tool_call_id=update.tool_call_id,
                    title=update.title,
                    kind=update.kind,
                    status=update.status,
                )
            )
            self._publish_diffs(update)
        elif isinstance(update, ToolCallProgress):
            self._publish_diffs(update)
            self.bus.publish(
                ToolResultEvent(session_id=sid, tool_call_id=update.tool_call_id, status=update.status)
            )
        elif isinstance(update, PlanUpdate):
            self.bus.publish(PlanUpdateEvent(session_id=sid, entries=update.entries))

    def _publish_diffs(self, update: ToolCallStart | ToolCallProgress) -> None:
        for diff in update.diffs:
            self.bus.publish(
                DiffEvent(
                    session_id=self.session.id,
                    tool_call_id=update.tool_call_id,
                    path=diff.path,
                    old_text=diff.old_text,
                    new_text=diff.new_text,
                )
            )

    def _resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = Path(self.session.cwd) / p
        return p


def _parse(model: type[Any], params: dict[str, Any]) -> Any:
    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise ProtocolError(INVALID_PARAMS, f"Invalid params: {e.errors()[:1]}") from e
