"""Client for UI processes talking to the runtime server."""

from acp_runtime.client.commands import AcpCommands, AcpEvents
from acp_runtime.client.runtime import RuntimeClient

__all__ = [
    "AcpCommands",
    "AcpEvents",
    "RuntimeClient",
]
