"""Event bus: local subscribers plus broadcast to attached UI connections."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any, Protocol

from acp_runtime.events.models import RuntimeEvent
from acp_runtime.logging import get_logger

log = get_logger("events.bus")

EventCallback = Callable[[dict[str, Any]], None]


class EventSink(Protocol):
    """An external connection that can receive serialized notifications."""

    @property
    def open(self) -> bool: ...

    def send(self, text: str) -> None: ...


class EventBus:
    """Fan out runtime events.

    Local subscribers are called synchronously in registration order.
    Every open connection added with add_client then receives the event
    as a JSON-RPC notification. A failing subscriber or connection is
    logged and skipped.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[EventCallback]] = {}
        self._clients: list[EventSink] = []

    # --- local subscribers ---

    def subscribe(self, event: str, callback: EventCallback) -> Callable[[], None]:
        """Register a callback for an event name.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.setdefault(event, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(event)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[event]

        return unsubscribe

    # --- external connections ---

    def add_client(self, conn: EventSink) -> None:
        if conn not in self._clients:
            self._clients.append(conn)
            log.debug("Event client added (%d total)", len(self._clients))

    def remove_client(self, conn: EventSink) -> None:
        if conn in self._clients:
            self._clients.remove(conn)
            log.debug("Event client removed (%d total)", len(self._clients))

    @property
    def clients(self) -> list[EventSink]:
        return list(self._clients)

    def clear(self) -> None:
        self._subscribers.clear()
        self._clients.clear()

    # --- delivery ---

    def emit(self, event: str, params: dict[str, Any] | None = None) -> None:
        params = params if params is not None else {}

        for callback in list(self._subscribers.get(event, ())):
            try:
                callback(params)
            except Exception:
                log.exception("Subscriber for %s failed", event)

        if not self._clients:
            return

        text = json.dumps({"jsonrpc": "2.0", "method": event, "params": params})
        for conn in list(self._clients):
            if not conn.open:
                continue
            try:
                conn.send(text)
            except Exception as e:
                log.warning("Failed to deliver %s to client: %s", event, e)

    def publish(self, event: RuntimeEvent) -> None:
        self.emit(event.event, event.payload())
