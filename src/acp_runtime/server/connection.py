"""Server side of one attached UI WebSocket."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

from acp_runtime.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket

log = get_logger("server.connection")


class ClientConnection:
    """An authenticated UI connection.

    ``send`` is synchronous: messages go on an ordered queue drained by a
    single writer task, so the event bus never awaits a slow socket and
    per-connection order is preserved.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._open = True

    @property
    def open(self) -> bool:
        return self._open

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name="ws-writer")

    def send(self, text: str) -> None:
        if self._open:
            self._queue.put_nowait(text)

    def run(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Run a message handler in its own task, tracked by this connection."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def close(self) -> None:
        """Stop accepting messages and let the writer finish."""
        if not self._open and self._writer is None:
            return
        self._open = False
        self._queue.put_nowait(None)
        if self._writer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer
            self._writer = None

    async def _drain(self) -> None:
        while True:
            text = await self._queue.get()
            if text is None:
                break
            try:
                await self._websocket.send_text(text)
            except Exception as e:
                log.debug("WebSocket send failed, dropping connection: %s", e)
                self._open = False
                break
