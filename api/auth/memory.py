"""
In-memory user repository and session store (STORAGE_BACKEND=memory, tests).
"""

from __future__ import annotations

from .repository import UserRepository, normalize_email
from .schemas import User, UserUpsert
from .sessions import Session, SessionStore, utc_now


class InMemoryUserRepository(UserRepository):
    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    async def get_user(self, user_id: str) -> User | None:
        user = self._users.get(user_id)
        return user.model_copy() if user is not None else None

    async def upsert_user(self, data: UserUpsert) -> User:
        now = utc_now()
        fields = data.model_dump()
        fields["email"] = normalize_email(data.email)

        existing = self._users.get(data.id)
        created_at = existing.created_at if existing is not None else now
        user = User(**fields, created_at=created_at, updated_at=now)
        self._users[data.id] = user
        return user.model_copy()


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def get(self, sid: str) -> Session | None:
        session = self._sessions.get(sid)
        if session is None:
            return None
        if session.is_expired(utc_now()):
            self._sessions.pop(sid, None)
            return None
        return session

    async def set(self, session: Session) -> None:
        self._sessions[session.sid] = session

    async def destroy(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    async def prune_expired(self) -> int:
        now = utc_now()
        expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)
