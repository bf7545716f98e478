"""
In-memory session store for development and tests.

Why: Keep the caller identity server-side; cookies carry only an opaque
session id. Authentication itself happens upstream; whoever creates a session
vouches for the identity stored in it. For production, replace with a
Redis/DB-backed store exposing the same `create/get/delete` methods.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional
import secrets
import time

from courseware.identity_access.domain import Identity


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    identity: Identity
    expires_at: Optional[int] = None


class SessionStore:
    def __init__(self):
        self._data: Dict[str, SessionRecord] = {}

    def create(self, *, identity: Identity, ttl_seconds: int = 3600) -> SessionRecord:
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(session_id=sid, identity=identity, expires_at=_now() + ttl_seconds)
        self._data[sid] = rec
        return rec

    def get(self, session_id: str) -> Optional[SessionRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)
