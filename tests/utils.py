"""Shared test utilities for acp-runtime tests."""

from __future__ import annotations

import asyncio
from typing import Any

from acp_runtime.events import EventBus, EventName


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: EventBus) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []
        for name in EventName.ALL:
            bus.subscribe(name, lambda params, name=name: self.events.append((name, params)))

    def of(self, event: str, session_id: str | None = None) -> list[dict[str, Any]]:
        return [
            params
            for name, params in self.events
            if name == event and (session_id is None or params.get("sessionId") == session_id)
        ]

    def statuses(self, session_id: str) -> list[str]:
        return [p["status"] for p in self.of(EventName.SESSION_STATUS, session_id)]


async def wait_for_event(
    recorder: EventRecorder,
    event: str,
    session_id: str | None = None,
    timeout: float = 5.0,
) -> dict[str, Any]:
    """Poll until ``event`` has been recorded and return the latest one.

    Raises:
        AssertionError: the event was not published within ``timeout``.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        found = recorder.of(event, session_id)
        if found:
            return found[-1]
        await asyncio.sleep(0.01)
    raise AssertionError(f"{event} was never published")
