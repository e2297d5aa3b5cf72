"""
Process-wide registry of live translation sessions.

Inserted on init, removed when the session reaches CLOSED (EndSession) or
on forced teardown. Lives on app.state; there are no module-level globals.
"""

from __future__ import annotations

import asyncio
import time

from observability.logger import log_event
from session.voice_session import TranslationSession


class SessionIdInUse(Exception):
    """A live session already uses the requested id."""


class SessionRegistry:
    """Dict of session_id -> TranslationSession guarded by an asyncio.Lock."""

    def __init__(self) -> None:
        self._sessions: dict[str, TranslationSession] = {}
        self._lock = asyncio.Lock()

    async def add(self, session: TranslationSession) -> None:
        async with self._lock:
            if session.session_id in self._sessions:
                raise SessionIdInUse(session.session_id)
            self._sessions[session.session_id] = session
            active = len(self._sessions)

        log_event({
            "ts_ms": int(time.time() * 1000),
            "event_type": "SESSION_REGISTERED",
            "session_id": session.session_id,
            "active_sessions": active,
        })

    async def remove(
        self, session_id: str, reason: str | None = None
    ) -> TranslationSession | None:
        """Remove a session. Idempotent; returns None if it was not registered."""
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            active = len(self._sessions)

        if session is not None:
            log_event({
                "ts_ms": int(time.time() * 1000),
                "event_type": "SESSION_UNREGISTERED",
                "session_id": session_id,
                "reason": reason,
                "active_sessions": active,
            })
        return session

    def get(self, session_id: str) -> TranslationSession | None:
        return self._sessions.get(session_id)

    def session_ids(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
