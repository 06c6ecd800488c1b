"""Agent type definitions and binary discovery."""

from acp_runtime.agents.locator import BinaryLocator, executable_suffix
from acp_runtime.agents.registry import AgentRegistry
from acp_runtime.agents.schema import BUILTIN_AGENTS, CLAUDE_CODE, CODEX, AgentDefinition

__all__ = [
    "AgentDefinition",
    "AgentRegistry",
    "BinaryLocator",
    "BUILTIN_AGENTS",
    "CLAUDE_CODE",
    "CODEX",
    "executable_suffix",
]
