"""Typed wrappers for the runtime's ``acp_*`` commands."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from acp_runtime.client.runtime import EventListener, RuntimeClient
from acp_runtime.events.models import EventName

AcpEvents = EventName


class AcpCommands:
    """Agent session commands over a RuntimeClient."""

    def __init__(self, client: RuntimeClient) -> None:
        self.client = client

    async def spawn_agent(
        self,
        agent_type: str,
        cwd: str,
        *,
        sandbox_mode: str | None = None,
        thinking: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"agentType": agent_type, "cwd": cwd}
        if sandbox_mode is not None:
            params["sandboxMode"] = sandbox_mode
        if thinking is not None:
            params["thinking"] = thinking
        return await self.client.invoke("acp_spawn", params)

    async def send_prompt(
        self,
        session_id: str,
        prompt: str,
        context: list[dict[str, str]] | None = None,
    ) -> None:
        params: dict[str, Any] = {"sessionId": session_id, "prompt": prompt}
        if context:
            params["context"] = context
        await self.client.invoke("acp_prompt", params)

    async def cancel_prompt(self, session_id: str) -> None:
        await self.client.invoke("acp_cancel", {"sessionId": session_id})

    async def terminate_session(self, session_id: str) -> None:
        await self.client.invoke("acp_terminate", {"sessionId": session_id})

    async def list_sessions(self) -> list[dict[str, Any]]:
        return await self.client.invoke("acp_list_sessions")

    async def set_permission_mode(self, session_id: str, mode: str) -> None:
        await self.client.invoke("acp_set_permission_mode", {"sessionId": session_id, "mode": mode})

    async def respond_to_permission(self, session_id: str, request_id: str, option_id: str) -> None:
        await self.client.invoke(
            "acp_respond_to_permission",
            {"sessionId": session_id, "requestId": request_id, "optionId": option_id},
        )

    async def respond_to_diff_proposal(self, session_id: str, proposal_id: str, accepted: bool) -> None:
        await self.client.invoke(
            "acp_respond_to_diff_proposal",
            {"sessionId": session_id, "proposalId": proposal_id, "accepted": accepted},
        )

    async def list_pending_decisions(self, session_id: str) -> dict[str, list[dict[str, Any]]]:
        return await self.client.invoke("acp_list_pending_decisions", {"sessionId": session_id})

    async def get_available_agents(self) -> list[dict[str, Any]]:
        return await self.client.invoke("acp_get_available_agents")

    async def check_agent_available(self, agent_type: str) -> bool:
        return bool(await self.client.invoke("acp_check_agent_available", {"agentType": agent_type}))

    async def ensure_claude_cli(self) -> str:
        return await self.client.invoke("acp_ensure_claude_cli")

    def subscribe(self, event: str, listener: EventListener) -> Callable[[], None]:
        """Listen for one of the AcpEvents."""
        if event not in AcpEvents.ALL:
            raise ValueError(f"Unknown ACP event: {event}")
        return self.client.on_event(event, listener)
