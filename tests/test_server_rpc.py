"""Tests for the JSON-RPC router and the acp_* handlers."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from pydantic import BaseModel

from acp_runtime.errors import SessionNotFoundError
from acp_runtime.server import RpcRouter, register_acp_handlers
from acp_runtime.server.rpc import (
    HANDLER_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
)
from acp_runtime.session import AgentSessionManager


class EchoParams(BaseModel):
    value: int


async def call(router: RpcRouter, msg: Any) -> dict[str, Any] | None:
    raw = msg if isinstance(msg, str) else json.dumps(msg)
    response = await router.handle_message(raw)
    return None if response is None else json.loads(response)


@pytest.fixture
def router() -> RpcRouter:
    router = RpcRouter()

    async def echo(params: EchoParams) -> int:
        return params.value

    async def raw(params: Any) -> Any:
        return params

    async def missing(params: Any) -> None:
        raise SessionNotFoundError("s9")

    async def broken(params: Any) -> None:
        raise KeyError("boom")

    router.register("echo", echo, EchoParams)
    router.register("raw", raw)
    router.register("missing", missing)
    router.register("broken", broken)
    return router


class TestRpcRouter:
    """Tests for request framing and error codes."""

    @pytest.mark.asyncio
    async def test_success(self, router: RpcRouter) -> None:
        response = await call(router, {"jsonrpc": "2.0", "id": 1, "method": "echo", "params": {"value": 4}})
        assert response == {"jsonrpc": "2.0", "result": 4, "id": 1}

    @pytest.mark.asyncio
    async def test_raw_params_passed_through(self, router: RpcRouter) -> None:
        response = await call(router, {"id": "a", "method": "raw", "params": [1, 2]})
        assert response["result"] == [1, 2]

    @pytest.mark.asyncio
    async def test_parse_error(self, router: RpcRouter) -> None:
        response = await call(router, "{not json")
        assert response["error"]["code"] == PARSE_ERROR
        assert response["id"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("msg", [[1, 2], {"id": 1}, {"id": 1, "method": 5}])
    async def test_invalid_request(self, router: RpcRouter, msg: Any) -> None:
        response = await call(router, msg)
        assert response["error"]["code"] == INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_method_not_found(self, router: RpcRouter) -> None:
        response = await call(router, {"id": 2, "method": "nope"})
        assert response["error"] == {"code": METHOD_NOT_FOUND, "message": "Method not found: nope"}

    @pytest.mark.asyncio
    async def test_invalid_params(self, router: RpcRouter) -> None:
        response = await call(router, {"id": 3, "method": "echo", "params": {"value": "x"}})
        assert response["error"]["code"] == INVALID_PARAMS
        assert response["error"]["message"].startswith("Invalid params: value:")

    @pytest.mark.asyncio
    async def test_runtime_fault_carries_type(self, router: RpcRouter) -> None:
        response = await call(router, {"id": 4, "method": "missing"})
        assert response["error"] == {
            "code": HANDLER_ERROR,
            "message": "Session not found: s9",
            "data": {"type": "session_not_found"},
        }

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, router: RpcRouter) -> None:
        response = await call(router, {"id": 5, "method": "broken"})
        assert response["error"]["code"] == HANDLER_ERROR
        assert "boom" in response["error"]["message"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["echo", "nope", "missing"])
    async def test_notifications_get_no_response(self, router: RpcRouter, method: str) -> None:
        assert await call(router, {"method": method, "params": {"value": 1}}) is None

    def test_methods_sorted(self, router: RpcRouter) -> None:
        assert router.methods == ["broken", "echo", "missing", "raw"]
        router.clear()
        assert router.methods == []


@pytest.fixture
def manager() -> Mock:
    mgr = Mock(spec=AgentSessionManager)
    mgr.spawn = AsyncMock(return_value={"id": "s1", "status": "ready"})
    mgr.prompt = AsyncMock()
    mgr.cancel = AsyncMock()
    mgr.terminate = AsyncMock()
    mgr.set_permission_mode = AsyncMock()
    mgr.ensure_claude_cli = AsyncMock(return_value="claude")
    mgr.list_sessions.return_value = []
    mgr.get_available_agents.return_value = [{"type": "codex", "available": True}]
    mgr.check_agent_available.return_value = True
    mgr.list_pending_decisions.return_value = {"permissions": [], "diffProposals": []}
    return mgr


@pytest.fixture
def acp_router(manager: Mock) -> RpcRouter:
    router = RpcRouter()
    register_acp_handlers(router, manager)
    return router


class TestAcpHandlers:
    """Tests for the acp_* command surface."""

    def test_all_commands_registered(self, acp_router: RpcRouter) -> None:
        assert acp_router.methods == sorted(
            [
                "acp_spawn",
                "acp_prompt",
                "acp_cancel",
                "acp_terminate",
                "acp_list_sessions",
                "acp_set_permission_mode",
                "acp_respond_to_permission",
                "acp_respond_to_diff_proposal",
                "acp_list_pending_decisions",
                "acp_get_available_agents",
                "acp_check_agent_available",
                "acp_ensure_claude_cli",
            ]
        )

    @pytest.mark.asyncio
    async def test_spawn(self, acp_router: RpcRouter, manager: Mock) -> None:
        response = await call(
            acp_router,
            {
                "id": 1,
                "method": "acp_spawn",
                "params": {"agentType": "codex", "cwd": "/w", "sandboxMode": "workspace-write"},
            },
        )
        assert response["result"] == {"id": "s1", "status": "ready"}
        manager.spawn.assert_awaited_once_with("codex", "/w", "workspace-write", None)

    @pytest.mark.asyncio
    async def test_prompt_returns_null(self, acp_router: RpcRouter, manager: Mock) -> None:
        response = await call(
            acp_router,
            {"id": 2, "method": "acp_prompt", "params": {"sessionId": "s1", "prompt": "hi"}},
        )
        assert response == {"jsonrpc": "2.0", "result": None, "id": 2}
        manager.prompt.assert_awaited_once_with("s1", "hi", None)

    @pytest.mark.asyncio
    async def test_respond_to_permission(self, acp_router: RpcRouter, manager: Mock) -> None:
        await call(
            acp_router,
            {
                "id": 3,
                "method": "acp_respond_to_permission",
                "params": {"sessionId": "s1", "requestId": "r1", "optionId": "allow"},
            },
        )
        manager.respond_to_permission.assert_called_once_with("s1", "r1", "allow")

    @pytest.mark.asyncio
    async def test_respond_to_diff_proposal(self, acp_router: RpcRouter, manager: Mock) -> None:
        await call(
            acp_router,
            {
                "id": 4,
                "method": "acp_respond_to_diff_proposal",
                "params": {"sessionId": "s1", "proposalId": "p1", "accepted": False},
            },
        )
        manager.respond_to_diff_proposal.assert_called_once_with("s1", "p1", False)

    @pytest.mark.asyncio
    async def test_queries(self, acp_router: RpcRouter) -> None:
        sessions = await call(acp_router, {"id": 5, "method": "acp_list_sessions"})
        assert sessions["result"] == []

        agents = await call(acp_router, {"id": 6, "method": "acp_get_available_agents"})
        assert agents["result"][0]["type"] == "codex"

        available = await call(
            acp_router,
            {"id": 7, "method": "acp_check_agent_available", "params": {"agentType": "codex"}},
        )
        assert available["result"] is True

    @pytest.mark.asyncio
    async def test_missing_required_param(self, acp_router: RpcRouter, manager: Mock) -> None:
        response = await call(acp_router, {"id": 8, "method": "acp_cancel", "params": {}})
        assert response["error"]["code"] == INVALID_PARAMS
        manager.cancel.assert_not_called()

    @pytest.mark.asyncio
    async def test_manager_error_reported(self, acp_router: RpcRouter, manager: Mock) -> None:
        manager.terminate.side_effect = SessionNotFoundError("s1")
        response = await call(
            acp_router, {"id": 9, "method": "acp_terminate", "params": {"sessionId": "s1"}}
        )
        assert response["error"]["data"] == {"type": "session_not_found"}
