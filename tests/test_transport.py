"""Tests for the stdio JSON-RPC transport and connection."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from acp_runtime.errors import ConnectionClosedError, ProtocolError
from acp_runtime.transport import JsonRpcConnection, JsonRpcMessage, StdioTransport
from acp_runtime.transport.connection import INTERNAL_ERROR, METHOD_NOT_FOUND


class MockWriter:
    """Captures lines written to a StdioTransport."""

    def __init__(self) -> None:
        self.lines: list[dict[str, Any]] = []
        self.closed = False
        self.written = asyncio.Event()

    def write(self, data: bytes) -> None:
        for line in data.decode().splitlines():
            self.lines.append(json.loads(line))
        self.written.set()

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass

    async def next_line(self, index: int) -> dict[str, Any]:
        while len(self.lines) <= index:
            self.written.clear()
            await asyncio.wait_for(self.written.wait(), 1.0)
        return self.lines[index]


class BrokenWriter(MockWriter):
    def write(self, data: bytes) -> None:
        raise BrokenPipeError("pipe closed")


def feed(reader: asyncio.StreamReader, msg: dict[str, Any]) -> None:
    reader.feed_data((json.dumps(msg) + "\n").encode())


@pytest.fixture
async def reader() -> asyncio.StreamReader:
    return asyncio.StreamReader()


@pytest.fixture
def writer() -> MockWriter:
    return MockWriter()


@pytest.fixture
def transport(reader: asyncio.StreamReader, writer: MockWriter) -> StdioTransport:
    return StdioTransport(reader=reader, writer=writer)


class TestJsonRpcMessage:
    """Tests for message classification and serialization."""

    def test_request(self) -> None:
        msg = JsonRpcMessage.from_dict({"jsonrpc": "2.0", "id": 1, "method": "m", "params": {}})
        assert msg.is_request()
        assert not msg.is_notification()
        assert not msg.is_response()

    def test_notification(self) -> None:
        msg = JsonRpcMessage.from_dict({"jsonrpc": "2.0", "method": "m"})
        assert msg.is_notification()

    def test_null_result_is_still_a_response(self) -> None:
        msg = JsonRpcMessage.from_dict({"jsonrpc": "2.0", "id": 3, "result": None})
        assert msg.is_response()
        assert msg.to_dict() == {"jsonrpc": "2.0", "id": 3, "result": None}

    def test_error_response(self) -> None:
        msg = JsonRpcMessage(id=1, error={"code": -1, "message": "x"})
        assert msg.to_dict() == {"jsonrpc": "2.0", "id": 1, "error": {"code": -1, "message": "x"}}

    def test_non_dict_params_dropped(self) -> None:
        msg = JsonRpcMessage.from_dict({"method": "m", "params": [1, 2]})
        assert msg.params is None


class TestStdioTransport:
    """Tests for newline-delimited framing."""

    @pytest.mark.asyncio
    async def test_skips_blank_and_malformed_lines(
        self, reader: asyncio.StreamReader, transport: StdioTransport
    ) -> None:
        reader.feed_data(b"\n")
        reader.feed_data(b"not json\n")
        reader.feed_data(b"[1, 2]\n")
        feed(reader, {"jsonrpc": "2.0", "method": "ok"})
        reader.feed_eof()

        msg = await transport.read_message()
        assert msg is not None
        assert msg.method == "ok"
        assert await transport.read_message() is None

    @pytest.mark.asyncio
    async def test_write_is_compact_single_line(
        self, writer: MockWriter, transport: StdioTransport
    ) -> None:
        await transport.write_message(JsonRpcMessage(id=1, method="m", params={"a": 1}))
        assert writer.lines == [{"jsonrpc": "2.0", "id": 1, "method": "m", "params": {"a": 1}}]

    @pytest.mark.asyncio
    async def test_messages_iterates_until_eof(
        self, reader: asyncio.StreamReader, transport: StdioTransport
    ) -> None:
        feed(reader, {"method": "a"})
        feed(reader, {"method": "b"})
        reader.feed_eof()
        assert [m.method async for m in transport.messages()] == ["a", "b"]


class TestJsonRpcConnection:
    """Tests for request correlation and inbound dispatch."""

    @pytest.mark.asyncio
    async def test_request_resolves_with_result(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()

        call = asyncio.create_task(conn.request("initialize", {"protocolVersion": 1}))
        sent = await writer.next_line(0)
        assert sent["method"] == "initialize"
        feed(reader, {"jsonrpc": "2.0", "id": sent["id"], "result": {"ok": True}})

        assert await call == {"ok": True}
        assert conn.pending_count == 0
        await conn.close()

    @pytest.mark.asyncio
    async def test_error_response_raises_protocol_error(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()

        call = asyncio.create_task(conn.request("session/new"))
        sent = await writer.next_line(0)
        feed(reader, {"id": sent["id"], "error": {"code": -32000, "message": "Auth required"}})

        with pytest.raises(ProtocolError) as exc_info:
            await call
        assert exc_info.value.rpc_code == -32000
        assert exc_info.value.message == "Auth required"
        await conn.close()

    @pytest.mark.asyncio
    async def test_eof_rejects_pending_requests(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()

        call = asyncio.create_task(conn.request("initialize"))
        await writer.next_line(0)
        assert conn.pending_count == 1
        reader.feed_eof()

        with pytest.raises(ConnectionClosedError):
            await call
        await conn.wait_closed()
        assert conn.closed
        assert conn.pending_count == 0

    @pytest.mark.asyncio
    async def test_request_after_close_raises(self, transport: StdioTransport) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()
        await conn.close()
        with pytest.raises(ConnectionClosedError):
            await conn.request("initialize")

    @pytest.mark.asyncio
    async def test_write_failure_is_connection_closed(self, reader: asyncio.StreamReader) -> None:
        conn = JsonRpcConnection(StdioTransport(reader=reader, writer=BrokenWriter()))
        with pytest.raises(ConnectionClosedError):
            await conn.request("initialize")
        assert conn.pending_count == 0

    @pytest.mark.asyncio
    async def test_timeout_drops_late_response(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()

        with pytest.raises(asyncio.TimeoutError):
            await conn.request("slow", timeout=0.05)
        assert conn.pending_count == 0

        sent = writer.lines[0]
        feed(reader, {"id": sent["id"], "result": "late"})
        await asyncio.sleep(0.01)
        assert not conn.closed
        await conn.close()

    @pytest.mark.asyncio
    async def test_inbound_request_is_answered(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        async def on_request(method: str, params: dict[str, Any]) -> Any:
            return {"echo": params["value"]}

        conn = JsonRpcConnection(transport, on_request=on_request)
        conn.start()
        feed(reader, {"jsonrpc": "2.0", "id": "a1", "method": "fs/read_text_file", "params": {"value": 7}})

        reply = await writer.next_line(0)
        assert reply == {"jsonrpc": "2.0", "id": "a1", "result": {"echo": 7}}
        await conn.close()

    @pytest.mark.asyncio
    async def test_inbound_request_errors_become_error_responses(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        async def on_request(method: str, params: dict[str, Any]) -> Any:
            if method == "known":
                raise ValueError("bad input")
            raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}")

        conn = JsonRpcConnection(transport, on_request=on_request)
        conn.start()
        feed(reader, {"id": 1, "method": "known", "params": {}})
        feed(reader, {"id": 2, "method": "terminal/create", "params": {}})

        first = await writer.next_line(0)
        second = await writer.next_line(1)
        by_id = {first["id"]: first, second["id"]: second}
        assert by_id[1]["error"] == {"code": INTERNAL_ERROR, "message": "bad input"}
        assert by_id[2]["error"]["code"] == METHOD_NOT_FOUND
        await conn.close()

    @pytest.mark.asyncio
    async def test_no_request_handler_is_method_not_found(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        conn = JsonRpcConnection(transport)
        conn.start()
        feed(reader, {"id": 9, "method": "anything"})

        reply = await writer.next_line(0)
        assert reply["error"]["code"] == METHOD_NOT_FOUND
        await conn.close()

    @pytest.mark.asyncio
    async def test_notifications_handled_in_order(
        self, reader: asyncio.StreamReader, transport: StdioTransport
    ) -> None:
        seen: list[int] = []

        async def on_notification(method: str, params: dict[str, Any]) -> None:
            if params["n"] == 0:
                # A slow first handler must not let later notifications overtake it
                await asyncio.sleep(0.02)
            seen.append(params["n"])

        conn = JsonRpcConnection(transport, on_notification=on_notification)
        conn.start()
        for n in range(5):
            feed(reader, {"method": "session/update", "params": {"n": n}})
        reader.feed_eof()

        await conn.wait_closed()
        assert seen == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_failing_notification_handler_does_not_stop_reader(
        self, reader: asyncio.StreamReader, transport: StdioTransport
    ) -> None:
        seen: list[int] = []

        async def on_notification(method: str, params: dict[str, Any]) -> None:
            if params["n"] == 1:
                raise RuntimeError("handler bug")
            seen.append(params["n"])

        conn = JsonRpcConnection(transport, on_notification=on_notification)
        conn.start()
        for n in range(3):
            feed(reader, {"method": "session/update", "params": {"n": n}})
        reader.feed_eof()

        await conn.wait_closed()
        assert seen == [0, 2]

    @pytest.mark.asyncio
    async def test_slow_request_does_not_block_responses(
        self, reader: asyncio.StreamReader, writer: MockWriter, transport: StdioTransport
    ) -> None:
        gate = asyncio.Event()

        async def on_request(method: str, params: dict[str, Any]) -> Any:
            await gate.wait()
            return {}

        conn = JsonRpcConnection(transport, on_request=on_request)
        conn.start()

        feed(reader, {"id": "perm", "method": "session/request_permission", "params": {}})
        call = asyncio.create_task(conn.request("session/prompt"))
        sent = await writer.next_line(0)
        feed(reader, {"id": sent["id"], "result": {"stopReason": "end_turn"}})

        assert await asyncio.wait_for(call, 1.0) == {"stopReason": "end_turn"}
        gate.set()
        reply = await writer.next_line(1)
        assert reply["id"] == "perm"
        await conn.close()
