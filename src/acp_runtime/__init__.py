"""acp-runtime: agent session control plane for ACP coding agents."""

__version__ = "0.1.0"

# Public API
from acp_runtime.agents import AgentDefinition, AgentRegistry, BinaryLocator
from acp_runtime.config import Config, get_config, load_config
from acp_runtime.events import EventBus, EventName
from acp_runtime.session import AgentSessionManager, Session, SessionRegistry, SessionStatus

__all__ = [
    # Sessions
    "AgentSessionManager",
    "Session",
    "SessionRegistry",
    "SessionStatus",
    # Agents
    "AgentDefinition",
    "AgentRegistry",
    "BinaryLocator",
    # Events
    "EventBus",
    "EventName",
    # Config
    "Config",
    "load_config",
    "get_config",
]
