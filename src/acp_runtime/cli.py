"""Command-line interface for acp-runtime."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import os
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.table import Table

from acp_runtime import __version__
from acp_runtime.agents import AgentRegistry
from acp_runtime.config import Config, load_config
from acp_runtime.errors import RuntimeFault
from acp_runtime.logging import setup_logging

console = Console()
err_console = Console(stderr=True)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="acp-runtime",
        description="Agent session control plane - spawn ACP agents and serve them to UIs",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Extra config file, applied after system/user/project config",
    )
    parser.add_argument(
        "--project",
        help="Project root whose .acp-runtime/config.yaml is loaded (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command")

    serve_parser = subparsers.add_parser("serve", help="Run the runtime server")
    serve_parser.add_argument("--host", help="Interface to bind (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default: 19420)")
    serve_parser.add_argument("--token", help="Auth token (default: random)")

    subparsers.add_parser("agents", help="List agent types and their availability")

    locate_parser = subparsers.add_parser("locate", help="Print the binary path for an agent type")
    locate_parser.add_argument("agent_type", help="Agent type, e.g. claude-code")

    return parser


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 1

    config = load_config(project_root=parsed.project or os.getcwd(), config_path=parsed.config)
    if parsed.verbose:
        config.logging.verbose = min(parsed.verbose + 1, 4)

    if parsed.command == "serve":
        return _serve(config, parsed.host, parsed.port, parsed.token)
    elif parsed.command == "agents":
        return _agents(config)
    elif parsed.command == "locate":
        return _locate(config, parsed.agent_type)
    else:
        parser.print_help()
        return 1


def _serve(config: Config, host: str | None, port: int | None, token: str | None) -> int:
    from acp_runtime.server import build_state, serve

    if host:
        config.server.host = host
    if port:
        config.server.port = port
    if token:
        config.server.token = token

    setup_logging(config.logging, force_stderr=True)
    state = build_state(config)

    err_console.print(
        f"[green]ACP runtime listening on http://{config.server.host}:{config.server.port}[/green]"
    )
    err_console.print(f"[dim]Auth token: {state.token}[/dim]")

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(serve(config, state))
    return 0


def _agents(config: Config) -> int:
    setup_logging(config.logging)
    registry = AgentRegistry(config.agents)

    table = Table(title="Agent Types")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Binary")
    table.add_column("Available")
    table.add_column("Reason", style="dim")

    for agent in registry.available_agents():
        table.add_row(
            agent["type"],
            agent["name"],
            agent["command"],
            "[green]yes[/green]" if agent["available"] else "[red]no[/red]",
            agent.get("unavailableReason", ""),
        )

    console.print(table)
    return 0


def _locate(config: Config, agent_type: str) -> int:
    setup_logging(config.logging)
    registry = AgentRegistry(config.agents)
    try:
        path = registry.resolve(agent_type)
    except RuntimeFault as e:
        err_console.print(f"[red]{e.message}[/red]", highlight=False)
        return 1
    console.print(str(path), highlight=False)
    return 0
