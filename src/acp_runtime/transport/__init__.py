"""JSON-RPC transport to agent processes."""

from acp_runtime.transport.connection import JsonRpcConnection
from acp_runtime.transport.stdio import JsonRpcMessage, StdioTransport

__all__ = [
    "JsonRpcConnection",
    "JsonRpcMessage",
    "StdioTransport",
]
