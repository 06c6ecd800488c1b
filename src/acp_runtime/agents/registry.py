"""Registry of agent types the runtime can spawn."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from acp_runtime.agents.locator import BinaryLocator
from acp_runtime.agents.schema import BUILTIN_AGENTS, AgentDefinition
from acp_runtime.config.schema import AgentsConfig
from acp_runtime.errors import RuntimeFault, UnknownAgentTypeError


class AgentRegistry:
    """Built-in and configured agent types.

    Maps an agent type to its definition and resolves the executable via
    the BinaryLocator.
    """

    def __init__(
        self,
        config: AgentsConfig | None = None,
        locator: BinaryLocator | None = None,
    ) -> None:
        config = config or AgentsConfig()
        self._locator = locator or BinaryLocator(config)
        self._types: dict[str, AgentDefinition] = {a.type: a for a in BUILTIN_AGENTS}
        for entry in config.definitions:
            self.register(
                AgentDefinition(
                    type=entry.type,
                    name=entry.name or entry.type,
                    description=entry.description,
                    binary=entry.binary,
                    legacy_binaries=tuple(entry.legacy_binaries),
                )
            )

    @property
    def locator(self) -> BinaryLocator:
        return self._locator

    def register(self, definition: AgentDefinition) -> None:
        self._types[definition.type] = definition

    def get(self, agent_type: str) -> AgentDefinition:
        """Look up an agent type.

        Raises:
            UnknownAgentTypeError: if the type is not registered.
        """
        definition = self._types.get(agent_type)
        if definition is None:
            raise UnknownAgentTypeError(agent_type)
        return definition

    def list_types(self) -> list[AgentDefinition]:
        return list(self._types.values())

    def resolve(self, agent_type: str) -> Path:
        """Resolve an agent type to its executable path."""
        definition = self.get(agent_type)
        return self._locator.find(definition.binary, definition.legacy_binaries)

    def is_available(self, agent_type: str) -> bool:
        try:
            self.resolve(agent_type)
        except RuntimeFault:
            return False
        return True

    def available_agents(self) -> list[dict[str, Any]]:
        """Describe every agent type with its availability."""
        agents: list[dict[str, Any]] = []
        for definition in self._types.values():
            entry = definition.to_dict()
            try:
                self._locator.find(definition.binary, definition.legacy_binaries)
            except RuntimeFault as e:
                entry["available"] = False
                entry["unavailableReason"] = e.message
            else:
                entry["available"] = True
            agents.append(entry)
        return agents
