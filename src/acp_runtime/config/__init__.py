"""Configuration management for acp-runtime.

Hierarchical YAML configuration:
- System-level config (/etc/acp-runtime/ or %PROGRAMDATA%)
- User-level config (~/.config/acp-runtime/, ~/.acp-runtime/ or %APPDATA%)
- Project-level config (<project_root>/.acp-runtime/)
- Environment variable overrides (highest priority)

Example usage:
    from acp_runtime.config import load_config

    config = load_config()
    print(config.server.port)
    print(config.session.decision_timeout)
"""

from acp_runtime.config.loader import get_config, load_config, reset_config
from acp_runtime.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from acp_runtime.config.schema import (
    AgentDefinitionConfig,
    AgentsConfig,
    ClientConfig,
    Config,
    LoggingConfig,
    ServerConfig,
    SessionConfig,
    ShutdownConfig,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "AgentDefinitionConfig",
    "AgentsConfig",
    "ClientConfig",
    "LoggingConfig",
    "ServerConfig",
    "SessionConfig",
    "ShutdownConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
