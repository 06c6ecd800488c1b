"""In-memory session registry."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from acp_runtime.errors import SessionNotFoundError
from acp_runtime.session.schema import Session


class SessionRegistry:
    """Owns every live session, keyed by session id."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def create(self, session: Session) -> Session:
        if session.id in self._sessions:
            raise ValueError(f"Session already registered: {session.id}")
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Session:
        """Look up a session.

        Raises:
            SessionNotFoundError: if the id is unknown.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def find(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def for_each(self, fn: Callable[[Session], Any]) -> None:
        for session in list(self._sessions.values()):
            fn(session)

    def list_summaries(self) -> list[dict[str, Any]]:
        return [s.summary() for s in self._sessions.values()]

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
