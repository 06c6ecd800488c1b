"""Configuration schema dataclasses for acp-runtime.

All fields carry defaults so partial YAML files merge cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

DEFAULT_PORT = 19420


@dataclass
class ServerConfig:
    """WebSocket/HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    token: str | None = None  # Generated at startup when unset
    auth_timeout: float = 5.0  # Seconds a socket may stay unauthenticated


@dataclass
class ShutdownConfig:
    """Agent process shutdown timeouts."""

    interrupt_timeout: float = 2.0
    """Seconds to wait after sending interrupt (SIGINT/Ctrl+Break)."""

    terminate_timeout: float = 3.0
    """Seconds to wait after sending terminate (SIGTERM)."""


@dataclass
class SessionConfig:
    """Agent session behaviour."""

    decision_timeout: float = 300.0  # Permission / diff approval window
    handshake_timeout: float = 60.0  # Per request: initialize, session/new
    default_thinking_tokens: int = 16000
    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)


@dataclass
class AgentDefinitionConfig:
    """A user-defined agent type.

    Example config.yaml:
        agents:
          definitions:
            - type: gemini
              name: Gemini CLI
              description: Google's coding agent
              binary: acp-gemini
    """

    type: str
    binary: str
    name: str = ""
    description: str = ""
    legacy_binaries: list[str] = field(default_factory=list)


@dataclass
class AgentsConfig:
    """Agent binary discovery.

    Unset directories fall back to the locator defaults.
    """

    bundled_dir: str | None = None
    user_dir: str | None = None
    dev_dir: str | None = None
    extra_search_dirs: list[str] = field(default_factory=list)
    definitions: list[AgentDefinitionConfig] = field(default_factory=list)


@dataclass
class ClientConfig:
    """Settings for the runtime client used by UI processes."""

    url: str | None = None  # Default: ws://localhost:<server.port>
    request_timeout: float = 30.0
    connect_timeout: float = 2.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are preserved here
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def client_url(self) -> str:
        return self.client.url or f"ws://localhost:{self.server.port}"
