"""Tests for event models and the EventBus."""

from __future__ import annotations

import json

import pytest

from acp_runtime.events import (
    DiffProposalEvent,
    EventBus,
    EventName,
    MessageChunkEvent,
    PromptCompleteEvent,
    SessionStatusEvent,
)


class MockConnection:
    """Mock external connection for testing."""

    def __init__(self, should_fail: bool = False, is_open: bool = True) -> None:
        self.should_fail = should_fail
        self.is_open = is_open
        self.sent: list[str] = []

    @property
    def open(self) -> bool:
        return self.is_open

    def send(self, text: str) -> None:
        if self.should_fail:
            raise ConnectionError("socket gone")
        self.sent.append(text)


class TestEventModels:
    """Tests for camelCase payloads."""

    def test_status_omits_unset_fields(self) -> None:
        event = SessionStatusEvent(session_id="s1", status="ready")
        assert event.event == EventName.SESSION_STATUS
        assert event.payload() == {"sessionId": "s1", "status": "ready"}

    def test_status_with_agent_info(self) -> None:
        event = SessionStatusEvent(session_id="s1", status="ready", agent_info={"name": "x"})
        assert event.payload()["agentInfo"] == {"name": "x"}

    def test_thought_chunk_flag(self) -> None:
        payload = MessageChunkEvent(session_id="s1", text="t", is_thought=True).payload()
        assert payload == {"sessionId": "s1", "text": "t", "isThought": True}

    def test_diff_proposal(self) -> None:
        payload = DiffProposalEvent(
            session_id="s1", proposal_id="p1", path="/x", old_text="", new_text="new"
        ).payload()
        assert payload == {
            "sessionId": "s1",
            "proposalId": "p1",
            "path": "/x",
            "oldText": "",
            "newText": "new",
        }

    def test_prompt_complete_default_stop_reason(self) -> None:
        assert PromptCompleteEvent(session_id="s1").payload()["stopReason"] == "end_turn"

    def test_all_names_are_acp_scheme(self) -> None:
        assert len(EventName.ALL) == 10
        assert all(name.startswith("acp://") for name in EventName.ALL)


class TestSubscribe:
    """Tests for local subscribers."""

    def test_subscribers_called_in_order(self) -> None:
        bus = EventBus()
        calls: list[str] = []
        bus.subscribe("e", lambda p: calls.append("first"))
        bus.subscribe("e", lambda p: calls.append("second"))

        bus.emit("e", {"x": 1})
        assert calls == ["first", "second"]

    def test_unsubscribe(self) -> None:
        bus = EventBus()
        calls: list[dict] = []
        unsubscribe = bus.subscribe("e", calls.append)

        unsubscribe()
        unsubscribe()
        bus.emit("e", {})
        assert calls == []

    def test_failing_subscriber_does_not_stop_delivery(self) -> None:
        bus = EventBus()
        calls: list[dict] = []

        def broken(params: dict) -> None:
            raise RuntimeError("subscriber bug")

        bus.subscribe("e", broken)
        bus.subscribe("e", calls.append)
        bus.emit("e", {"ok": True})
        assert calls == [{"ok": True}]

    def test_emit_without_params_sends_empty_dict(self) -> None:
        bus = EventBus()
        calls: list[dict] = []
        bus.subscribe("e", calls.append)
        bus.emit("e")
        assert calls == [{}]


class TestBroadcast:
    """Tests for delivery to external connections."""

    def test_clients_receive_json_rpc_notification(self) -> None:
        bus = EventBus()
        conn = MockConnection()
        bus.add_client(conn)

        bus.publish(SessionStatusEvent(session_id="s1", status="prompting"))

        assert len(conn.sent) == 1
        assert json.loads(conn.sent[0]) == {
            "jsonrpc": "2.0",
            "method": "acp://session-status",
            "params": {"sessionId": "s1", "status": "prompting"},
        }

    def test_failed_send_does_not_stop_other_clients(self) -> None:
        bus = EventBus()
        broken = MockConnection(should_fail=True)
        healthy = MockConnection()
        bus.add_client(broken)
        bus.add_client(healthy)

        bus.emit("acp://error", {"sessionId": "s1", "error": "x"})
        assert len(healthy.sent) == 1

    def test_closed_connection_skipped(self) -> None:
        bus = EventBus()
        closed = MockConnection(is_open=False)
        bus.add_client(closed)
        bus.emit("e", {})
        assert closed.sent == []

    def test_add_is_idempotent_and_remove(self) -> None:
        bus = EventBus()
        conn = MockConnection()
        bus.add_client(conn)
        bus.add_client(conn)
        assert bus.clients == [conn]

        bus.remove_client(conn)
        bus.remove_client(conn)
        assert bus.clients == []

    def test_clear(self) -> None:
        bus = EventBus()
        calls: list[dict] = []
        bus.subscribe("e", calls.append)
        bus.add_client(MockConnection())

        bus.clear()
        bus.emit("e", {})
        assert calls == []
        assert bus.clients == []

    @pytest.mark.parametrize("count", [1, 3])
    def test_serialized_once_per_emit(self, count: int) -> None:
        bus = EventBus()
        conns = [MockConnection() for _ in range(count)]
        for conn in conns:
            bus.add_client(conn)

        bus.emit("e", {"n": 1})
        texts = {conn.sent[0] for conn in conns}
        assert len(texts) == 1
