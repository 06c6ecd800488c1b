"""Runtime server: command router and WebSocket endpoint."""

from acp_runtime.server.app import (
    LOCAL_ADDRESSES,
    RuntimeState,
    build_state,
    create_app,
    generate_token,
    serve,
)
from acp_runtime.server.connection import ClientConnection
from acp_runtime.server.handlers import register_acp_handlers
from acp_runtime.server.rpc import RpcRouter

__all__ = [
    "ClientConnection",
    "LOCAL_ADDRESSES",
    "RpcRouter",
    "RuntimeState",
    "build_state",
    "create_app",
    "generate_token",
    "register_acp_handlers",
    "serve",
]
