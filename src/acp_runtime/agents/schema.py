"""Agent type definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AgentDefinition:
    """A kind of agent the runtime knows how to spawn."""

    type: str  # e.g., "claude-code", "codex"
    name: str  # Human-readable name
    description: str
    binary: str  # Executable base name, without platform suffix
    legacy_binaries: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "command": self.binary,
        }


CLAUDE_CODE = AgentDefinition(
    type="claude-code",
    name="Claude Code",
    description="AI coding assistant by Anthropic",
    binary="seren-acp-claude",
    legacy_binaries=("acp_agent",),
)

CODEX = AgentDefinition(
    type="codex",
    name="Codex",
    description="AI coding assistant powered by OpenAI Codex",
    binary="seren-acp-codex",
)

BUILTIN_AGENTS: tuple[AgentDefinition, ...] = (CLAUDE_CODE, CODEX)
