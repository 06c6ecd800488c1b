"""Bidirectional JSON-RPC connection to an agent process.

Both peers may send requests. Outbound requests are correlated with their
responses through futures keyed by id. Inbound requests are served by a
request handler, each in its own task so a handler waiting on a human
does not stall the reader. Inbound notifications are handled inline, in
arrival order.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

from acp_runtime.errors import ConnectionClosedError, ProtocolError, RuntimeFault, error_text
from acp_runtime.logging import get_logger
from acp_runtime.transport.stdio import JsonRpcMessage, StdioTransport

log = get_logger("transport.connection")

# JSON-RPC 2.0 error codes
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

RequestHandler = Callable[[str, dict[str, Any]], Awaitable[Any]]
NotificationHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


class JsonRpcConnection:
    """JSON-RPC peer over a StdioTransport."""

    def __init__(
        self,
        transport: StdioTransport,
        *,
        on_request: RequestHandler | None = None,
        on_notification: NotificationHandler | None = None,
        name: str = "agent",
    ) -> None:
        self._transport = transport
        self._on_request = on_request
        self._on_notification = on_notification
        self._name = name
        self._pending: dict[int | str, asyncio.Future[JsonRpcMessage]] = {}
        self._next_id = 0
        self._reader_task: asyncio.Task[None] | None = None
        self._handler_tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        """Start reading messages from the peer."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(
                self._read_loop(), name=f"jsonrpc-reader-{self._name}"
            )

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for its result.

        Raises:
            ProtocolError: the peer answered with an error.
            ConnectionClosedError: the connection closed first.
            asyncio.TimeoutError: ``timeout`` elapsed.
        """
        if self._closed:
            raise ConnectionClosedError(f"Connection to {self._name} is closed")

        msg_id = self._next_id
        self._next_id += 1

        future: asyncio.Future[JsonRpcMessage] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future

        try:
            try:
                await self._transport.write_message(
                    JsonRpcMessage(id=msg_id, method=method, params=params or {})
                )
            except (ConnectionError, OSError) as e:
                raise ConnectionClosedError(f"Connection to {self._name} lost: {e}") from e
            if timeout is None:
                response = await future
            else:
                response = await asyncio.wait_for(future, timeout)
        finally:
            self._pending.pop(msg_id, None)

        if response.error is not None:
            raise ProtocolError(
                int(response.error.get("code", INTERNAL_ERROR)),
                str(response.error.get("message", "Unknown error")),
                response.error.get("data"),
            )
        return response.result

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        if self._closed:
            raise ConnectionClosedError(f"Connection to {self._name} is closed")
        try:
            await self._transport.write_message(JsonRpcMessage(method=method, params=params or {}))
        except (ConnectionError, OSError) as e:
            raise ConnectionClosedError(f"Connection to {self._name} lost: {e}") from e

    async def close(self) -> None:
        """Stop reading and fail every outstanding request."""
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._shutdown()
        await self._transport.close()

    async def wait_closed(self) -> None:
        if self._reader_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task

    # --- internals ---

    async def _read_loop(self) -> None:
        try:
            async for msg in self._transport.messages():
                if msg.is_response():
                    self._resolve(msg)
                elif msg.is_request():
                    task = asyncio.create_task(self._serve_request(msg))
                    self._handler_tasks.add(task)
                    task.add_done_callback(self._handler_tasks.discard)
                elif msg.is_notification():
                    await self._dispatch_notification(msg)
                else:
                    log.debug("Ignoring message without id or method from %s", self._name)
        finally:
            log.debug("Connection to %s reached EOF", self._name)
            self._shutdown()

    def _resolve(self, msg: JsonRpcMessage) -> None:
        assert msg.id is not None
        future = self._pending.pop(msg.id, None)
        if future is None:
            log.debug("Dropping response for unknown id %r from %s", msg.id, self._name)
            return
        if not future.done():
            future.set_result(msg)

    async def _serve_request(self, msg: JsonRpcMessage) -> None:
        assert msg.method is not None
        try:
            if self._on_request is None:
                raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {msg.method}")
            result = await self._on_request(msg.method, msg.params or {})
            reply = JsonRpcMessage(id=msg.id, result=result)
        except ProtocolError as e:
            reply = JsonRpcMessage(
                id=msg.id, error=_error_body(e.rpc_code, e.message, e.data)
            )
        except asyncio.CancelledError:
            raise
        except RuntimeFault as e:
            reply = JsonRpcMessage(
                id=msg.id, error=_error_body(INTERNAL_ERROR, e.message, {"code": e.code})
            )
        except Exception as e:
            log.warning("Handler for %s failed: %s", msg.method, e)
            reply = JsonRpcMessage(id=msg.id, error=_error_body(INTERNAL_ERROR, error_text(e)))

        if self._closed:
            return
        try:
            await self._transport.write_message(reply)
        except (ConnectionError, OSError) as e:
            log.debug("Could not answer %s request: %s", msg.method, e)

    async def _dispatch_notification(self, msg: JsonRpcMessage) -> None:
        if self._on_notification is None:
            return
        assert msg.method is not None
        try:
            await self._on_notification(msg.method, msg.params or {})
        except Exception:
            log.exception("Notification handler for %s failed", msg.method)

    def _shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(ConnectionClosedError(f"Connection to {self._name} closed"))

        for task in list(self._handler_tasks):
            task.cancel()


def _error_body(code: int, message: str, data: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        body["data"] = data
    return body
