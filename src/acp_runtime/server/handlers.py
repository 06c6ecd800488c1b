"""``acp_*`` command handlers exposed over the runtime socket."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from acp_runtime.server.rpc import RpcRouter
from acp_runtime.session import AgentSessionManager


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SpawnParams(_Params):
    agent_type: str = Field(alias="agentType")
    cwd: str
    sandbox_mode: str | None = Field(default=None, alias="sandboxMode")
    thinking: dict[str, Any] | None = None


class PromptParams(_Params):
    session_id: str = Field(alias="sessionId")
    prompt: str
    context: list[dict[str, Any]] | None = None


class SessionParams(_Params):
    session_id: str = Field(alias="sessionId")


class PermissionModeParams(_Params):
    session_id: str = Field(alias="sessionId")
    mode: str


class PermissionResponseParams(_Params):
    session_id: str = Field(alias="sessionId")
    request_id: str = Field(alias="requestId")
    option_id: str = Field(alias="optionId")


class DiffProposalResponseParams(_Params):
    session_id: str = Field(alias="sessionId")
    proposal_id: str = Field(alias="proposalId")
    accepted: bool


class AgentTypeParams(_Params):
    agent_type: str = Field(alias="agentType")


def register_acp_handlers(router: RpcRouter, manager: AgentSessionManager) -> None:
    """Register every ``acp_*`` method against a session manager."""

    async def spawn(p: SpawnParams) -> dict[str, Any]:
        return await manager.spawn(p.agent_type, p.cwd, p.sandbox_mode, p.thinking)

    async def prompt(p: PromptParams) -> None:
        await manager.prompt(p.session_id, p.prompt, p.context)

    async def cancel(p: SessionParams) -> None:
        await manager.cancel(p.session_id)

    async def terminate(p: SessionParams) -> None:
        await manager.terminate(p.session_id)

    async def list_sessions(_: Any) -> list[dict[str, Any]]:
        return manager.list_sessions()

    async def set_permission_mode(p: PermissionModeParams) -> None:
        await manager.set_permission_mode(p.session_id, p.mode)

    async def respond_to_permission(p: PermissionResponseParams) -> None:
        manager.respond_to_permission(p.session_id, p.request_id, p.option_id)

    async def respond_to_diff_proposal(p: DiffProposalResponseParams) -> None:
        manager.respond_to_diff_proposal(p.session_id, p.proposal_id, p.accepted)

    async def list_pending_decisions(p: SessionParams) -> dict[str, Any]:
        return manager.list_pending_decisions(p.session_id)

    async def get_available_agents(_: Any) -> list[dict[str, Any]]:
        return manager.get_available_agents()

    async def check_agent_available(p: AgentTypeParams) -> bool:
        return manager.check_agent_available(p.agent_type)

    async def ensure_claude_cli(_: Any) -> str:
        return await manager.ensure_claude_cli()

    router.register("acp_spawn", spawn, SpawnParams)
    router.register("acp_prompt", prompt, PromptParams)
    router.register("acp_cancel", cancel, SessionParams)
    router.register("acp_terminate", terminate, SessionParams)
    router.register("acp_list_sessions", list_sessions)
    router.register("acp_set_permission_mode", set_permission_mode, PermissionModeParams)
    router.register("acp_respond_to_permission", respond_to_permission, PermissionResponseParams)
    router.register(
        "acp_respond_to_diff_proposal", respond_to_diff_proposal, DiffProposalResponseParams
    )
    router.register("acp_list_pending_decisions", list_pending_decisions, SessionParams)
    router.register("acp_get_available_agents", get_available_agents)
    router.register("acp_check_agent_available", check_agent_available, AgentTypeParams)
    router.register("acp_ensure_claude_cli", ensure_claude_cli)
