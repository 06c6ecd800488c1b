"""Agent process supervision.

Spawns agent executables with piped stdio, forwards their stderr to the
log and reports exit through a callback.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import platform
import signal
from collections.abc import Callable, Sequence
from pathlib import Path

from acp_runtime.errors import ProcessSpawnError
from acp_runtime.logging import get_logger
from acp_runtime.transport.stdio import StdioTransport

log = get_logger("session.supervisor")
stderr_log = get_logger("agent.stderr")

_WINDOWS = platform.system() == "Windows"
_CREATE_NEW_PROCESS_GROUP = 0x00000200 if _WINDOWS else 0

# Agents can emit very large single-line messages (file contents, diffs)
STREAM_LIMIT = 16 * 1024 * 1024

ExitCallback = Callable[[int], None]


def _send_interrupt(process: asyncio.subprocess.Process) -> None:
    """Send interrupt signal to process (Ctrl+Break on Windows, SIGINT on Unix)."""
    if _WINDOWS:
        try:
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)  # type: ignore[attr-defined]
        except OSError:
            process.terminate()
    else:
        try:
            os.kill(process.pid, signal.SIGINT)
        except OSError:
            process.terminate()


def _send_terminate(process: asyncio.subprocess.Process) -> None:
    """Send terminate signal to process (SIGTERM on Unix, TerminateProcess on Windows)."""
    if _WINDOWS:
        process.terminate()
    else:
        try:
            os.kill(process.pid, signal.SIGTERM)
        except OSError:
            process.terminate()


class AgentProcess:
    """A running agent executable."""

    def __init__(self, process: asyncio.subprocess.Process, name: str) -> None:
        self._process = process
        self.name = name
        self._stderr_task: asyncio.Task[None] | None = None
        self._exit_task: asyncio.Task[int] | None = None

    @classmethod
    async def spawn(
        cls,
        binary: Path | str,
        args: Sequence[str] = (),
        *,
        cwd: str,
        name: str | None = None,
    ) -> AgentProcess:
        """Start an agent with stdin/stdout/stderr pipes.

        Raises:
            ProcessSpawnError: the executable could not be started.
        """
        log.info("Spawning agent: %s %s (cwd=%s)", binary, " ".join(args), cwd)
        try:
            process = await asyncio.create_subprocess_exec(
                str(binary),
                *args,
                cwd=cwd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
                # New process group so Ctrl+Break reaches only the agent
                creationflags=_CREATE_NEW_PROCESS_GROUP,  # type: ignore[arg-type]
            )
        except (OSError, ValueError) as e:
            raise ProcessSpawnError(
                f"Failed to spawn agent process {binary}: {e}",
                details={"binary": str(binary), "cwd": cwd},
            ) from e

        if process.stdin is None or process.stdout is None:
            process.kill()
            raise ProcessSpawnError("Failed to create agent process stdio")

        return cls(process, name or Path(binary).name)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    @property
    def running(self) -> bool:
        return self._process.returncode is None

    def transport(self) -> StdioTransport:
        return StdioTransport.from_process(self._process)

    def start(self, on_exit: ExitCallback | None = None) -> None:
        """Start the stderr pump and the exit watcher."""
        if self._exit_task is not None:
            return
        if self._process.stderr is not None:
            self._stderr_task = asyncio.create_task(
                self._pump_stderr(self._process.stderr), name=f"stderr-{self.name}"
            )
        self._exit_task = asyncio.create_task(self._watch_exit(on_exit), name=f"exit-{self.name}")

    async def wait(self) -> int:
        """Wait for the process to exit and for the exit callback to run."""
        if self._exit_task is None:
            return await self._process.wait()
        return await asyncio.shield(self._exit_task)

    def kill(self) -> None:
        """Kill the process. No-op if it already exited."""
        if self._process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._process.kill()

    async def graceful_shutdown(
        self,
        interrupt_timeout: float = 2.0,
        terminate_timeout: float = 3.0,
    ) -> None:
        """Gracefully shutdown the process: interrupt → terminate → kill.

        Args:
            interrupt_timeout: Seconds to wait after sending interrupt signal
            terminate_timeout: Seconds to wait after sending terminate signal
        """
        process = self._process
        if process.returncode is not None:
            return

        _send_interrupt(process)
        try:
            await asyncio.wait_for(process.wait(), timeout=interrupt_timeout)
            return
        except asyncio.TimeoutError:
            pass

        _send_terminate(process)
        try:
            await asyncio.wait_for(process.wait(), timeout=terminate_timeout)
            return
        except asyncio.TimeoutError:
            pass

        log.warning("Agent %s ignored interrupt and terminate, killing", self.name)
        self.kill()
        await process.wait()

    async def _pump_stderr(self, stream: asyncio.StreamReader) -> None:
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Over-long line, already discarded by the reader
                continue
            except (ConnectionError, OSError):
                break
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            if text:
                stderr_log.info("[%s] %s", self.name, text)

    async def _watch_exit(self, on_exit: ExitCallback | None) -> int:
        returncode = await self._process.wait()
        if self._stderr_task is not None:
            # Let the pump flush the last lines
            with contextlib.suppress(asyncio.TimeoutError, asyncio.CancelledError):
                await asyncio.wait_for(asyncio.shield(self._stderr_task), timeout=0.5)
        log.info("Agent %s exited: code=%s", self.name, returncode)
        if on_exit is not None:
            try:
                on_exit(returncode)
            except Exception:
                log.exception("Exit callback for %s failed", self.name)
        return returncode
