"""WebSocket client for the runtime server.

Used by UI processes: one persistent connection, correlated commands with
a timeout, and listeners for the events the runtime pushes.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from typing import Any

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from acp_runtime.config.schema import Config
from acp_runtime.errors import (
    ConnectionClosedError,
    RpcError,
    RpcTimeoutError,
    RuntimeNotConnectedError,
)
from acp_runtime.logging import TRACE, get_logger

log = get_logger("client")

EventListener = Callable[[dict[str, Any]], None]


class RuntimeClient:
    """Client side of the runtime's JSON-RPC socket."""

    def __init__(
        self,
        url: str,
        token: str,
        *,
        request_timeout: float = 30.0,
        connect_timeout: float = 2.0,
    ) -> None:
        self.url = url
        self.token = token
        self.request_timeout = request_timeout
        self.connect_timeout = connect_timeout
        self._ws: ClientConnection | None = None
        self._reader: asyncio.Task[None] | None = None
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._listeners: dict[str, list[EventListener]] = {}
        self._next_id = 0

    @classmethod
    def from_config(cls, config: Config, token: str) -> RuntimeClient:
        return cls(
            config.client_url,
            token,
            request_timeout=config.client.request_timeout,
            connect_timeout=config.client.connect_timeout,
        )

    @property
    def connected(self) -> bool:
        return self._ws is not None and self._reader is not None and not self._reader.done()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        """Open the socket and authenticate.

        Raises:
            RuntimeNotConnectedError: the runtime could not be reached.
            ConnectionClosedError: the runtime rejected the token.
        """
        if self.connected:
            return
        try:
            self._ws = await connect(self.url, open_timeout=self.connect_timeout)
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
            raise RuntimeNotConnectedError(f"Failed to connect to runtime at {self.url}: {e}") from e

        self._reader = asyncio.create_task(self._read_loop(self._ws), name="runtime-client-reader")
        log.info("Connected to runtime at %s", self.url)
        await self.invoke("auth", {"token": self.token})

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()
        if self._reader is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader
            self._reader = None
        self._fail_pending("Runtime connection closed")

    async def __aenter__(self) -> RuntimeClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def invoke(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Call a runtime command and wait for its result.

        Raises:
            RuntimeNotConnectedError: no open connection.
            RpcError: the runtime answered with an error.
            RpcTimeoutError: no answer within ``request_timeout``.
            ConnectionClosedError: the connection dropped first.
        """
        ws = self._ws
        if ws is None or not self.connected:
            raise RuntimeNotConnectedError()

        self._next_id += 1
        msg_id = str(self._next_id)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = future

        request: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": msg_id}
        if params is not None:
            request["params"] = params

        try:
            try:
                await ws.send(json.dumps(request))
            except ConnectionClosed as e:
                raise ConnectionClosedError(f"Runtime connection closed: {e}") from e
            return await asyncio.wait_for(future, self.request_timeout)
        except asyncio.TimeoutError:
            raise RpcTimeoutError(f"Runtime command timed out: {method}") from None
        finally:
            self._pending.pop(msg_id, None)

    def on_event(self, event: str, listener: EventListener) -> Callable[[], None]:
        """Listen for a runtime event. Returns a function that removes the listener."""
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event)
            if listeners and listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    # --- internals ---

    async def _read_loop(self, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                self._handle_message(raw)
        except ConnectionClosed:
            pass
        finally:
            code = ws.close_code
            log.info("Runtime connection closed (code=%s)", code)
            self._fail_pending(f"Runtime connection closed (code={code})")

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            msg = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            log.debug("Dropping malformed message from runtime")
            return
        if not isinstance(msg, dict):
            log.debug("Dropping non-object message from runtime")
            return

        log.log(TRACE, "<< %.500s", raw)
        msg_id = msg.get("id")
        if msg_id is not None:
            self._resolve(str(msg_id), msg)
        elif isinstance(msg.get("method"), str):
            self._dispatch_event(msg["method"], msg.get("params") or {})

    def _resolve(self, msg_id: str, msg: dict[str, Any]) -> None:
        future = self._pending.pop(msg_id, None)
        if future is None or future.done():
            log.debug("Ignoring response for unknown or expired id %s", msg_id)
            return
        error = msg.get("error")
        if isinstance(error, dict):
            future.set_exception(
                RpcError(int(error.get("code", -32000)), str(error.get("message", "Unknown error")))
            )
        else:
            future.set_result(msg.get("result"))

    def _dispatch_event(self, event: str, params: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(event, ())):
            try:
                listener(params)
            except Exception:
                log.exception("Listener for %s failed", event)

    def _fail_pending(self, reason: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(ConnectionClosedError(reason))
