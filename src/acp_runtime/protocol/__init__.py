"""Agent Client Protocol message types used by the runtime."""

from acp_runtime.protocol.messages import (
    CLIENT_INFO,
    PROTOCOL_VERSION,
    AcpModel,
    CancelNotification,
    InitializeRequest,
    InitializeResponse,
    NewSessionRequest,
    NewSessionResponse,
    PermissionOption,
    PermissionRequest,
    PromptRequest,
    PromptResponse,
    ReadTextFileRequest,
    SetModeRequest,
    TextContent,
    WriteTextFileRequest,
    selected_outcome,
    thinking_meta,
)
from acp_runtime.protocol.updates import (
    AgentMessageChunk,
    AgentThoughtChunk,
    DiffContent,
    PlanUpdate,
    SessionUpdate,
    ToolCallProgress,
    ToolCallStart,
    extract_diffs,
    parse_session_update,
)

__all__ = [
    "AcpModel",
    "AgentMessageChunk",
    "AgentThoughtChunk",
    "CancelNotification",
    "CLIENT_INFO",
    "DiffContent",
    "InitializeRequest",
    "InitializeResponse",
    "NewSessionRequest",
    "NewSessionResponse",
    "PermissionOption",
    "PermissionRequest",
    "PlanUpdate",
    "PROTOCOL_VERSION",
    "PromptRequest",
    "PromptResponse",
    "ReadTextFileRequest",
    "SessionUpdate",
    "SetModeRequest",
    "TextContent",
    "ToolCallProgress",
    "ToolCallStart",
    "WriteTextFileRequest",
    "extract_diffs",
    "parse_session_update",
    "selected_outcome",
    "thinking_meta",
]
