"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Cascading merge (system -> user -> project -> explicit file -> env)
- Conversion from dict to the typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from acp_runtime.config.paths import get_config_paths
from acp_runtime.config.schema import (
    AgentDefinitionConfig,
    AgentsConfig,
    DEFAULT_PORT,
    ClientConfig,
    Config,
    LoggingConfig,
    ServerConfig,
    SessionConfig,
    ShutdownConfig,
)

_log = logging.getLogger("acp_runtime.config")

_cached_config: Config | None = None

_KNOWN_SECTIONS = {"server", "session", "agents", "client", "logging"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Nested dicts merge recursively, lists and scalars are replaced, and
    ``None`` in the override never clears a base value.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def env_overrides() -> dict[str, Any]:
    """Build a config dict from ACP_RUNTIME_* environment variables."""
    overrides: dict[str, Any] = {}

    port = os.environ.get("ACP_RUNTIME_PORT")
    if port:
        try:
            overrides.setdefault("server", {})["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring non-numeric ACP_RUNTIME_PORT=%r", port)

    token = os.environ.get("ACP_RUNTIME_TOKEN")
    if token:
        overrides.setdefault("server", {})["token"] = token

    log_path = os.environ.get("ACP_RUNTIME_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass."""
    server_data = data.get("server", {})
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=int(server_data.get("port", DEFAULT_PORT)),
        token=server_data.get("token"),
        auth_timeout=float(server_data.get("auth_timeout", 5.0)),
    )

    session_data = data.get("session", {})
    shutdown_data = session_data.get("shutdown", {})
    session = SessionConfig(
        decision_timeout=float(session_data.get("decision_timeout", 300.0)),
        handshake_timeout=float(session_data.get("handshake_timeout", 60.0)),
        default_thinking_tokens=int(session_data.get("default_thinking_tokens", 16000)),
        shutdown=ShutdownConfig(
            interrupt_timeout=float(shutdown_data.get("interrupt_timeout", 2.0)),
            terminate_timeout=float(shutdown_data.get("terminate_timeout", 3.0)),
        ),
    )

    agents_data = data.get("agents", {})
    definitions = [
        AgentDefinitionConfig(
            type=d["type"],
            binary=d["binary"],
            name=d.get("name", "") or d["type"],
            description=d.get("description", ""),
            legacy_binaries=[b for b in d.get("legacy_binaries", []) if isinstance(b, str)],
        )
        for d in agents_data.get("definitions", [])
        if isinstance(d, dict) and d.get("type") and d.get("binary")
    ]
    agents = AgentsConfig(
        bundled_dir=agents_data.get("bundled_dir"),
        user_dir=agents_data.get("user_dir"),
        dev_dir=agents_data.get("dev_dir"),
        extra_search_dirs=[p for p in agents_data.get("extra_search_dirs", []) if isinstance(p, str)],
        definitions=definitions,
    )

    client_data = data.get("client", {})
    client = ClientConfig(
        url=client_data.get("url"),
        request_timeout=float(client_data.get("request_timeout", 30.0)),
        connect_timeout=float(client_data.get("connect_timeout", 2.0)),
    )

    log_data = data.get("logging", {})
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    extra = {k: v for k, v in data.items() if k not in _KNOWN_SECTIONS}

    return Config(
        server=server,
        session=session,
        agents=agents,
        client=client,
        logging=logging_config,
        extra=extra,
    )


def load_config(
    project_root: str | None = None,
    config_path: Path | None = None,
    reload: bool = False,
) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file (``--config``)
    3. Project config (<project_root>/.acp-runtime/config.yaml)
    4. User config
    5. System config

    Only the global config (no project root, no explicit file) is cached.
    """
    global _cached_config

    cacheable = project_root is None and config_path is None
    if cacheable and _cached_config is not None and not reload:
        return _cached_config

    layers: list[dict[str, Any]] = []
    paths = get_config_paths(project_root)
    if config_path is not None:
        paths.append(config_path)

    for path in paths:
        data = load_yaml_file(path)
        if data:
            _log.debug("Loaded config from %s", path)
            layers.append(data)

    env_config = env_overrides()
    if env_config:
        layers.append(env_config)

    merged: dict[str, Any] = {}
    for layer in layers:
        merged = deep_merge(merged, layer)

    config = dict_to_config(merged)

    if cacheable:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Drop the cached config (used by tests)."""
    global _cached_config
    _cached_config = None
