"""FastAPI application and uvicorn lifecycle for the runtime server.

HTTP and WebSocket on localhost with token auth. The health endpoint is
the only place the token is exposed; WebSocket clients must present it
as their first message.
"""

from __future__ import annotations

import asyncio
import json
import secrets
from collections.abc import AsyncIterator, Collection
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from acp_runtime import __version__
from acp_runtime.agents import AgentRegistry
from acp_runtime.config.schema import Config
from acp_runtime.events import EventBus
from acp_runtime.logging import get_logger
from acp_runtime.server.connection import ClientConnection
from acp_runtime.server.handlers import register_acp_handlers
from acp_runtime.server.rpc import RpcRouter
from acp_runtime.session import AgentSessionManager

log = get_logger("server")

LOCAL_ADDRESSES = frozenset({"127.0.0.1", "::1", "::ffff:127.0.0.1"})

# WebSocket close codes
CLOSE_AUTH_TIMEOUT = 4001
CLOSE_INVALID_TOKEN = 4002
CLOSE_FORBIDDEN = 4003


def generate_token() -> str:
    return secrets.token_hex(32)


@dataclass
class RuntimeState:
    """Objects shared by every request, built once at startup."""

    token: str
    bus: EventBus
    manager: AgentSessionManager
    router: RpcRouter
    auth_timeout: float = 5.0
    trusted_hosts: Collection[str] = field(default_factory=lambda: LOCAL_ADDRESSES)


def build_state(config: Config) -> RuntimeState:
    """Wire up the bus, session manager and command router from config."""
    bus = EventBus()
    manager = AgentSessionManager(bus, AgentRegistry(config.agents), config.session)
    router = RpcRouter()
    register_acp_handlers(router, manager)
    return RuntimeState(
        token=config.server.token or generate_token(),
        bus=bus,
        manager=manager,
        router=router,
        auth_timeout=config.server.auth_timeout,
    )


def create_app(state: RuntimeState) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await state.manager.shutdown_all()
        state.bus.clear()

    app = FastAPI(
        title="ACP Runtime",
        description="Agent session control plane",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    _register_routes(app, state)
    return app


def _register_routes(app: FastAPI, state: RuntimeState) -> None:
    """Register the health route and the command socket."""

    def is_trusted(host: str | None) -> bool:
        return host is not None and host in state.trusted_hosts

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        if not is_trusted(request.client.host if request.client else None):
            raise HTTPException(status_code=403, detail="Forbidden: only localhost connections allowed")
        return {"status": "ok", "version": __version__, "token": state.token}

    @app.websocket("/")
    async def runtime_socket(websocket: WebSocket) -> None:
        """Command socket: auth first, then JSON-RPC in both directions."""
        await websocket.accept()

        if not is_trusted(websocket.client.host if websocket.client else None):
            await websocket.close(code=CLOSE_FORBIDDEN, reason="Forbidden")
            return

        log.info("UI connecting (awaiting auth)")
        try:
            raw = await asyncio.wait_for(_receive_frame(websocket), timeout=state.auth_timeout)
        except asyncio.TimeoutError:
            log.warning("Auth timeout, closing connection")
            await websocket.close(code=CLOSE_AUTH_TIMEOUT, reason="Authentication timeout")
            return
        except WebSocketDisconnect:
            return

        authenticated, auth_id = _check_auth(raw, state.token)
        if not authenticated:
            log.warning("Invalid auth token, closing connection")
            await websocket.close(code=CLOSE_INVALID_TOKEN, reason="Invalid auth token")
            return

        conn = ClientConnection(websocket)
        conn.start()
        state.bus.add_client(conn)
        log.info("UI authenticated")
        if auth_id is not None:
            conn.send(json.dumps({"jsonrpc": "2.0", "result": {"authenticated": True}, "id": auth_id}))

        async def dispatch(message: str) -> None:
            response = await state.router.handle_message(message)
            if response is not None:
                conn.send(response)

        try:
            while True:
                message = await _receive_frame(websocket)
                conn.run(dispatch(message))
        except WebSocketDisconnect:
            log.info("UI disconnected")
        finally:
            state.bus.remove_client(conn)
            await conn.close()


async def _receive_frame(websocket: WebSocket) -> str:
    """Receive one frame as text; binary frames are decoded as UTF-8."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    text = message.get("text")
    if text is not None:
        return text
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


def _check_auth(raw: str, token: str) -> tuple[bool, Any]:
    """Validate an auth message.

    Returns:
        Whether it carried the right token, and its id (None when absent).
    """
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return False, None
    if not isinstance(msg, dict) or msg.get("method") != "auth":
        return False, None
    params = msg.get("params")
    supplied = params.get("token") if isinstance(params, dict) else None
    if not isinstance(supplied, str) or not secrets.compare_digest(supplied.encode(), token.encode()):
        return False, None
    return True, msg.get("id")


async def serve(config: Config, state: RuntimeState | None = None) -> None:
    """Run the runtime server until cancelled."""
    import uvicorn

    state = state or build_state(config)
    app = create_app(state)

    server_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(server_config)
    log.info("Listening on http://%s:%s", config.server.host, config.server.port)
    await server.serve()
