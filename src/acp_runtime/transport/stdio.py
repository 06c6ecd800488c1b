"""Newline-delimited JSON-RPC framing over byte streams."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from acp_runtime.logging import TRACE, get_logger

log = get_logger("transport")


@dataclass
class JsonRpcMessage:
    """Parsed JSON-RPC message."""

    jsonrpc: str = "2.0"
    id: int | str | None = None
    method: str | None = None
    params: dict[str, Any] | None = None
    result: Any = None
    error: dict[str, Any] | None = None

    def is_request(self) -> bool:
        """A request has a method and an id."""
        return self.method is not None and self.id is not None

    def is_notification(self) -> bool:
        return self.method is not None and self.id is None

    def is_response(self) -> bool:
        """A response has an id and no method; ``result`` may be null."""
        return self.method is None and self.id is not None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.id is not None:
            d["id"] = self.id
        if self.method is not None:
            d["method"] = self.method
            if self.params is not None:
                d["params"] = self.params
        elif self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JsonRpcMessage:
        params = data.get("params")
        return cls(
            jsonrpc=data.get("jsonrpc", "2.0"),
            id=data.get("id"),
            method=data.get("method"),
            params=params if isinstance(params, dict) else None,
            result=data.get("result"),
            error=data.get("error"),
        )


@dataclass
class StdioTransport:
    """Async JSON-RPC transport over a reader/writer stream pair.

    Each message is one line of compact JSON.
    """

    reader: asyncio.StreamReader | None = None
    writer: Any = None  # asyncio.StreamWriter or a subprocess stdin
    _write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @classmethod
    def from_process(cls, process: asyncio.subprocess.Process) -> StdioTransport:
        """Create a transport over a subprocess's stdout/stdin."""
        if process.stdin is None or process.stdout is None:
            raise ValueError("Process must have stdin and stdout pipes")
        return cls(reader=process.stdout, writer=process.stdin)

    async def read_message(self) -> JsonRpcMessage | None:
        """Read the next JSON-RPC message.

        Blank or malformed lines are skipped. Returns None on EOF.
        """
        if self.reader is None:
            return None

        while True:
            try:
                line = await self.reader.readline()
            except ValueError as e:
                # Line longer than the stream limit; the reader has discarded it
                log.warning("Dropping oversized message: %s", e)
                continue
            except (ConnectionError, OSError):
                return None

            if not line:
                return None

            text = line.decode("utf-8", errors="replace").strip()
            if not text:
                continue

            try:
                data = json.loads(text)
            except json.JSONDecodeError:
                log.debug("Dropping non-JSON line: %.200s", text)
                continue

            if not isinstance(data, dict):
                log.debug("Dropping non-object message: %.200s", text)
                continue

            log.log(TRACE, "<< %.500s", text)
            return JsonRpcMessage.from_dict(data)

    async def write_message(self, msg: JsonRpcMessage) -> None:
        if self.writer is None:
            return

        async with self._write_lock:
            data = json.dumps(msg.to_dict(), separators=(",", ":"))
            log.log(TRACE, ">> %.500s", data)
            self.writer.write(f"{data}\n".encode())
            await self.writer.drain()

    async def messages(self) -> AsyncIterator[JsonRpcMessage]:
        """Iterate over incoming messages until EOF."""
        while True:
            msg = await self.read_message()
            if msg is None:
                break
            yield msg

    async def close(self) -> None:
        if self.writer is None:
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass
