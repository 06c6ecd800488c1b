"""ACP request and response types exchanged with agent processes."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from acp_runtime import __version__

PROTOCOL_VERSION = 1

CLIENT_INFO = {"name": "acp-runtime", "title": "ACP Runtime", "version": __version__}


class AcpModel(BaseModel):
    """Base model for ACP types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True)

    def to_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class FSCapabilities(AcpModel):
    read_text_file: bool = Field(default=True, alias="readTextFile")
    write_text_file: bool = Field(default=True, alias="writeTextFile")


class ClientCapabilities(AcpModel):
    fs: FSCapabilities = Field(default_factory=FSCapabilities)
    terminal: bool = False


class TextContent(AcpModel):
    type: str = "text"
    text: str


# === Client → Agent ===


class InitializeRequest(AcpModel):
    protocol_version: int = Field(default=PROTOCOL_VERSION, alias="protocolVersion")
    client_capabilities: ClientCapabilities = Field(
        default_factory=ClientCapabilities, alias="clientCapabilities"
    )
    client_info: dict[str, Any] = Field(default_factory=lambda: dict(CLIENT_INFO), alias="clientInfo")


class InitializeResponse(AcpModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    protocol_version: int | None = Field(default=None, alias="protocolVersion")
    agent_capabilities: dict[str, Any] | None = Field(default=None, alias="agentCapabilities")
    agent_info: dict[str, Any] | None = Field(default=None, alias="agentInfo")
    auth_methods: list[dict[str, Any]] | None = Field(default=None, alias="authMethods")


class NewSessionRequest(AcpModel):
    cwd: str
    mcp_servers: list[dict[str, Any]] = Field(default_factory=list, alias="mcpServers")
    meta: dict[str, Any] | None = Field(default=None, alias="_meta")


class NewSessionResponse(AcpModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    session_id: str | None = Field(default=None, alias="sessionId")


class PromptRequest(AcpModel):
    session_id: str = Field(alias="sessionId")
    prompt: list[TextContent]


class PromptResponse(AcpModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    stop_reason: str | None = Field(default=None, alias="stopReason")


class SetModeRequest(AcpModel):
    session_id: str = Field(alias="sessionId")
    mode_id: str = Field(alias="modeId")


class CancelNotification(AcpModel):
    session_id: str = Field(alias="sessionId")


# === Agent → Client ===


class PermissionOption(AcpModel):
    """Permission option presented to the user."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    option_id: str = Field(alias="optionId")
    name: str | None = None
    kind: str | None = None


class PermissionRequest(AcpModel):
    session_id: str | None = Field(default=None, alias="sessionId")
    tool_call: dict[str, Any] = Field(default_factory=dict, alias="toolCall")
    options: list[PermissionOption]


class ReadTextFileRequest(AcpModel):
    session_id: str | None = Field(default=None, alias="sessionId")
    path: str
    line: int | None = None  # 1-based
    limit: int | None = None


class WriteTextFileRequest(AcpModel):
    session_id: str | None = Field(default=None, alias="sessionId")
    path: str
    content: str


def selected_outcome(option_id: str) -> dict[str, Any]:
    """Response body for a permission request the user answered."""
    return {"outcome": {"outcome": "selected", "optionId": option_id}}


def thinking_meta(max_tokens: int) -> dict[str, Any]:
    """``_meta`` block that enables extended thinking for Claude agents."""
    return {"claudeCode": {"options": {"maxThinkingTokens": max_tokens}}}
