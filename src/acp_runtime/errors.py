"""Error types and failure classification for the runtime.

Every failure the control plane can report maps to one exception class
with a stable ``code``. The JSON-RPC router turns these into error
responses and session-scoped failures are additionally published as
``acp://error`` events.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import Any


class RuntimeFault(Exception):
    """Base class for all runtime errors."""

    code = "runtime_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


# --- configuration ---------------------------------------------------------


class UnknownAgentTypeError(RuntimeFault):
    code = "unknown_agent_type"

    def __init__(self, agent_type: str) -> None:
        super().__init__(f"Unknown agent type: {agent_type}")
        self.agent_type = agent_type


class AgentBinaryNotFoundError(RuntimeFault):
    """No candidate location held the agent executable."""

    code = "binary_not_found"

    def __init__(self, binary: str, candidates: Sequence[str]) -> None:
        listing = "\n".join(f"  - {path}" for path in candidates)
        super().__init__(
            f"Agent binary '{binary}' not found. Checked locations:\n{listing}",
            details={"binary": binary, "candidates": list(candidates)},
        )
        self.binary = binary
        self.candidates = list(candidates)


# --- process ---------------------------------------------------------------


class ProcessSpawnError(RuntimeFault):
    code = "process_spawn_failed"


class CliInstallError(RuntimeFault):
    code = "cli_install_failed"


# --- protocol --------------------------------------------------------------


class ProtocolError(RuntimeFault):
    """JSON-RPC error returned by the peer."""

    code = "protocol_error"

    def __init__(self, rpc_code: int, message: str, data: Any = None) -> None:
        super().__init__(message, details={"code": rpc_code, "data": data})
        self.rpc_code = rpc_code
        self.data = data


class ConnectionClosedError(RuntimeFault):
    code = "connection_closed"

    def __init__(self, message: str = "Connection closed") -> None:
        super().__init__(message)


class HandshakeError(RuntimeFault):
    code = "handshake_failed"


class AuthenticationError(HandshakeError):
    """The agent refused to start or prompt because it is not logged in."""

    code = "authentication_required"


class PromptError(RuntimeFault):
    code = "prompt_failed"


# --- pending decisions -----------------------------------------------------


class DecisionTimeoutError(RuntimeFault):
    code = "decision_timeout"


class DecisionRejectedError(RuntimeFault):
    code = "decision_rejected"


class SessionTerminatedError(RuntimeFault):
    code = "session_terminated"


class PendingDecisionNotFoundError(RuntimeFault):
    code = "decision_not_found"


# --- sessions --------------------------------------------------------------


class SessionNotFoundError(RuntimeFault):
    code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


# --- external transport ----------------------------------------------------


class RpcError(RuntimeFault):
    """Error response received by the runtime client."""

    code = "rpc_error"

    def __init__(self, rpc_code: int, message: str) -> None:
        super().__init__(message)
        self.rpc_code = rpc_code


class RpcTimeoutError(RuntimeFault):
    code = "rpc_timeout"


class RuntimeNotConnectedError(RuntimeFault):
    code = "not_connected"

    def __init__(self, message: str = "Runtime not connected") -> None:
        super().__init__(message)


# --- classification --------------------------------------------------------


class ErrorCategory(str, Enum):
    """Closed set of failure categories for agent-reported errors."""

    AUTHENTICATION = "authentication"
    GENERIC = "generic"


AUTH_ERROR_MARKERS = (
    "invalid api key",
    "authentication required",
    "auth required",
    "please run /login",
    "authrequired",
)

SPAWN_FAILURE_CONTEXT = "Failed to initialize agent"
PROMPT_FAILURE_CONTEXT = "Prompt failed"


def classify_error(message: str) -> ErrorCategory:
    """Classify an agent failure message.

    Matches case-insensitively against AUTH_ERROR_MARKERS.
    """
    lowered = message.lower()
    if any(marker in lowered for marker in AUTH_ERROR_MARKERS):
        return ErrorCategory.AUTHENTICATION
    return ErrorCategory.GENERIC


def auth_remediation(agent_type: str) -> str:
    """Return login instructions for an agent that is not authenticated."""
    if agent_type == "claude-code":
        return (
            "Claude Code is not logged in. Please open a terminal and run:\n\n"
            "  claude login\n\n"
            "Then try starting the agent again."
        )
    return "Agent authentication required. Please log in via the agent CLI first."


def describe_failure(agent_type: str, message: str, context: str) -> tuple[ErrorCategory, str]:
    """Build the user-visible text for an agent failure.

    Returns:
        The category and the message to report.
    """
    category = classify_error(message)
    if category is ErrorCategory.AUTHENTICATION:
        return category, auth_remediation(agent_type)
    return category, f"{context}: {message}"


def error_text(exc: BaseException) -> str:
    """Best-effort human text for an exception."""
    if isinstance(exc, RuntimeFault):
        return exc.message
    text = str(exc)
    return text or type(exc).__name__
