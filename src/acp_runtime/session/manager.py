"""Session manager: the command surface for agent sessions.

Spawns agents, drives the protocol handshake, forwards prompts and
answers, and keeps the session state machine and its status events in
step with the agent process.
"""

from __future__ import annotations

import asyncio
import platform
import shutil
import uuid
from pathlib import Path
from typing import Any

from acp_runtime.agents import AgentRegistry
from acp_runtime.config.schema import SessionConfig
from acp_runtime.errors import (
    PROMPT_FAILURE_CONTEXT,
    SPAWN_FAILURE_CONTEXT,
    AuthenticationError,
    CliInstallError,
    ConnectionClosedError,
    ErrorCategory,
    HandshakeError,
    PromptError,
    SessionTerminatedError,
    describe_failure,
    error_text,
)
from acp_runtime.events import (
    ErrorEvent,
    EventBus,
    PromptCompleteEvent,
    SessionStatusEvent,
)
from acp_runtime.logging import get_logger
from acp_runtime.protocol import (
    CancelNotification,
    InitializeRequest,
    InitializeResponse,
    NewSessionRequest,
    NewSessionResponse,
    PromptRequest,
    PromptResponse,
    SetModeRequest,
    TextContent,
    thinking_meta,
)
from acp_runtime.session.client import AgentClientHandler
from acp_runtime.session.registry import SessionRegistry
from acp_runtime.session.schema import Session, SessionStatus
from acp_runtime.session.supervisor import AgentProcess
from acp_runtime.transport.connection import JsonRpcConnection

log = get_logger("session.manager")

CLAUDE_CLI_PACKAGE = "@anthropic-ai/claude-code"


class AgentSessionManager:
    """Owns agent sessions and exposes the operations the UI calls."""

    def __init__(
        self,
        bus: EventBus,
        agents: AgentRegistry | None = None,
        config: SessionConfig | None = None,
        registry: SessionRegistry | None = None,
    ) -> None:
        self.bus = bus
        self.agents = agents or AgentRegistry()
        self.config = config or SessionConfig()
        self.sessions = registry or SessionRegistry()

    # --- lifecycle ---

    async def spawn(
        self,
        agent_type: str,
        cwd: str,
        sandbox_mode: str | None = None,
        thinking: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Start an agent and open a protocol session with it.

        Returns:
            The session summary. Its status is ``ready``, or ``terminated``
            when the agent exited before the handshake finished.

        Raises:
            UnknownAgentTypeError, AgentBinaryNotFoundError, ProcessSpawnError:
                nothing was registered.
            AuthenticationError, HandshakeError: the session is kept with
                status ``error``.
        """
        binary = self.agents.resolve(agent_type)
        resolved_cwd = str(Path(cwd).expanduser().resolve())
        session = Session(
            id=str(uuid.uuid4()),
            agent_type=agent_type,
            cwd=resolved_cwd,
            decision_timeout=self.config.decision_timeout,
        )

        args = ["--sandbox", sandbox_mode] if sandbox_mode else []
        process = await AgentProcess.spawn(
            binary, args, cwd=resolved_cwd, name=f"{agent_type}:{session.id[:8]}"
        )
        handler = AgentClientHandler(session, self.bus)
        connection = JsonRpcConnection(
            process.transport(),
            on_request=handler.handle_request,
            on_notification=handler.handle_notification,
            name=process.name,
        )
        session.process = process
        session.connection = connection
        self.sessions.create(session)

        process.start(on_exit=lambda code: self._on_process_exit(session, code))
        connection.start()

        try:
            await self._handshake(session, connection, thinking)
        except ConnectionClosedError:
            # The agent went away mid-handshake; exit is a status change,
            # reported by the exit observer.
            try:
                await asyncio.wait_for(process.wait(), self.config.shutdown.terminate_timeout)
            except asyncio.TimeoutError:
                self._fail_handshake(session, "Agent closed its output without exiting")
            return session.summary()
        except Exception as e:
            self._fail_handshake(session, error_text(e))

        return session.summary()

    async def _handshake_request(
        self, connection: JsonRpcConnection, method: str, params: dict[str, Any]
    ) -> Any:
        try:
            return await connection.request(method, params, timeout=self.config.handshake_timeout)
        except asyncio.TimeoutError:
            raise HandshakeError(f"Agent did not respond to {method}") from None

    async def _handshake(
        self,
        session: Session,
        connection: JsonRpcConnection,
        thinking: dict[str, Any] | None,
    ) -> None:
        result = await self._handshake_request(
            connection, "initialize", InitializeRequest().to_params()
        )
        init = InitializeResponse.model_validate(result or {})
        session.agent_info = init.agent_info

        meta = None
        if thinking is not None:
            max_tokens = thinking.get("maxTokens") or self.config.default_thinking_tokens
            meta = thinking_meta(int(max_tokens))

        result = await self._handshake_request(
            connection, "session/new", NewSessionRequest(cwd=session.cwd, meta=meta).to_params()
        )
        created = NewSessionResponse.model_validate(result or {})
        session.acp_session_id = created.session_id or session.id

        if session.transition_to(SessionStatus.READY):
            self.bus.publish(
                SessionStatusEvent(
                    session_id=session.id,
                    status=SessionStatus.READY.value,
                    agent_info=session.agent_info,
                )
            )
            log.info("Session %s ready (%s)", session.id, session.agent_type)

    def _fail_handshake(self, session: Session, message: str) -> None:
        category, text = describe_failure(session.agent_type, message, SPAWN_FAILURE_CONTEXT)
        if session.transition_to(SessionStatus.ERROR):
            self.bus.publish(
                SessionStatusEvent(session_id=session.id, status=SessionStatus.ERROR.value, error=text)
            )
        self.bus.publish(ErrorEvent(session_id=session.id, error=text))
        log.warning("Session %s failed to initialize: %s", session.id, message)
        if category is ErrorCategory.AUTHENTICATION:
            raise AuthenticationError(text)
        raise HandshakeError(text)

    async def terminate(self, session_id: str) -> None:
        """Kill the agent and forget the session.

        Raises:
            SessionNotFoundError: unknown id, including a second terminate.
        """
        session = self.sessions.get(session_id)
        session.terminate_requested = True
        self.sessions.remove(session_id)
        self._reject_orphans(session)

        if session.process is not None:
            session.process.kill()
        if session.connection is not None:
            await session.connection.close()

        self._mark_terminated(session)
        log.info("Session %s terminated", session_id)

    async def shutdown_all(self) -> None:
        """Gracefully stop every agent, e.g. on server shutdown."""
        sessions = list(self.sessions)
        if not sessions:
            return
        log.info("Shutting down %d agent session(s)", len(sessions))
        await asyncio.gather(*(self._shutdown_session(s) for s in sessions), return_exceptions=True)

    async def _shutdown_session(self, session: Session) -> None:
        session.terminate_requested = True
        self.sessions.remove(session.id)
        self._reject_orphans(session)
        if session.process is not None:
            shutdown = self.config.shutdown
            await session.process.graceful_shutdown(
                interrupt_timeout=shutdown.interrupt_timeout,
                terminate_timeout=shutdown.terminate_timeout,
            )
        if session.connection is not None:
            await session.connection.close()
        self._mark_terminated(session)

    def _on_process_exit(self, session: Session, returncode: int) -> None:
        self._reject_orphans(session)
        if session.terminate_requested:
            return
        log.info("Agent for session %s exited with code %s", session.id, returncode)
        self._mark_terminated(session)

    def _mark_terminated(self, session: Session) -> None:
        if session.transition_to(SessionStatus.TERMINATED):
            self.bus.publish(
                SessionStatusEvent(session_id=session.id, status=SessionStatus.TERMINATED.value)
            )

    def _reject_orphans(self, session: Session) -> None:
        def make_error() -> SessionTerminatedError:
            return SessionTerminatedError(f"Session {session.id} terminated")

        session.permissions.reject_all(make_error)
        session.diff_proposals.reject_all(make_error)

    # --- prompting ---

    async def prompt(
        self,
        session_id: str,
        prompt: str,
        context: list[dict[str, Any]] | None = None,
    ) -> None:
        """Send a prompt and wait for the agent's turn to end.

        Progress arrives as events while this call is suspended.
        """
        session = self.sessions.get(session_id)
        connection = self._live_connection(session)
        if not session.transition_to(SessionStatus.PROMPTING):
            raise PromptError(
                f"Session {session_id} is not ready (status: {session.status.value})"
            )
        self.bus.publish(
            SessionStatusEvent(session_id=session.id, status=SessionStatus.PROMPTING.value)
        )

        content = [TextContent(text=prompt)]
        for item in context or ():
            text = item.get("text") if isinstance(item, dict) else None
            if text:
                content.append(TextContent(text=text))

        try:
            result = await connection.request(
                "session/prompt",
                PromptRequest(session_id=session.protocol_session_id, prompt=content).to_params(),
            )
        except Exception as e:
            category, text = describe_failure(session.agent_type, error_text(e), PROMPT_FAILURE_CONTEXT)
            self.bus.publish(ErrorEvent(session_id=session.id, error=text))
            log.warning("Prompt failed for session %s: %s", session.id, error_text(e))
            if category is ErrorCategory.AUTHENTICATION:
                raise AuthenticationError(text) from e
            raise PromptError(text) from e
        else:
            response = PromptResponse.model_validate(result or {})
            self.bus.publish(
                PromptCompleteEvent(
                    session_id=session.id, stop_reason=response.stop_reason or "end_turn"
                )
            )
        finally:
            session.cancelling = False
            if session.status is SessionStatus.PROMPTING and session.transition_to(SessionStatus.READY):
                self.bus.publish(
                    SessionStatusEvent(session_id=session.id, status=SessionStatus.READY.value)
                )

    async def cancel(self, session_id: str) -> None:
        """Ask the agent to stop the current turn. Duplicate calls are ignored."""
        session = self.sessions.get(session_id)
        if session.cancelling:
            log.info("Cancel already in progress for %s, ignoring duplicate", session_id)
            return

        connection = self._live_connection(session)
        session.cancelling = True
        try:
            await connection.notify(
                "session/cancel",
                CancelNotification(session_id=session.protocol_session_id).to_params(),
            )
        finally:
            session.cancelling = False

    async def set_permission_mode(self, session_id: str, mode: str) -> None:
        session = self.sessions.get(session_id)
        connection = self._live_connection(session)
        await connection.request(
            "session/set_mode",
            SetModeRequest(session_id=session.protocol_session_id, mode_id=mode).to_params(),
        )

    # --- decisions ---

    def respond_to_permission(self, session_id: str, request_id: str, option_id: str) -> None:
        session = self.sessions.get(session_id)
        session.permissions.resolve(request_id, option_id)

    def respond_to_diff_proposal(self, session_id: str, proposal_id: str, accepted: bool) -> None:
        session = self.sessions.get(session_id)
        session.diff_proposals.resolve(proposal_id, bool(accepted))

    def list_pending_decisions(self, session_id: str) -> dict[str, list[dict[str, Any]]]:
        session = self.sessions.get(session_id)
        return {
            "permissions": session.permissions.payloads(),
            "diffProposals": session.diff_proposals.payloads(),
        }

    # --- queries ---

    def list_sessions(self) -> list[dict[str, Any]]:
        return self.sessions.list_summaries()

    def get_available_agents(self) -> list[dict[str, Any]]:
        return self.agents.available_agents()

    def check_agent_available(self, agent_type: str) -> bool:
        return self.agents.is_available(agent_type)

    async def ensure_claude_cli(self) -> str:
        """Make sure the ``claude`` CLI is on PATH, installing it with npm if not."""
        if shutil.which("claude"):
            return "claude"

        npm = "npm.cmd" if platform.system() == "Windows" else "npm"
        log.info("Installing Claude Code CLI via %s", npm)
        try:
            proc = await asyncio.create_subprocess_exec(
                npm,
                "install",
                "-g",
                CLAUDE_CLI_PACKAGE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CliInstallError(f"Failed to install Claude Code CLI: {e}") from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"npm exited with {proc.returncode}"
            raise CliInstallError(f"Failed to install Claude Code CLI: {detail}")

        log.info("Claude Code CLI installed: %s", stdout.decode(errors="replace").strip())
        return "claude"

    def _live_connection(self, session: Session) -> JsonRpcConnection:
        if session.is_terminated or session.connection is None:
            raise SessionTerminatedError(f"Session {session.id} has terminated")
        return session.connection
