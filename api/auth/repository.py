"""
Auth persistence helpers (users and sessions, raw SQL).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from core.db import Database, affected_rows

from .schemas import User, UserUpsert
from .sessions import Session, SessionStore, utc_now

USER_COLUMNS = "id, email, first_name, last_name, profile_image_url, created_at, updated_at"


def normalize_email(email: str | None) -> str | None:
    email = (email or "").strip().lower()
    return email or None


class UserRepository(ABC):
    @abstractmethod
    async def get_user(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def upsert_user(self, data: UserUpsert) -> User:
        """
        Insert the user, or overwrite its mutable fields keeping id and
        created_at.
        """


class PostgresUserRepository(UserRepository):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def get_user(self, user_id: str) -> User | None:
        row = await self.database.fetch_one(
            f"""
            SELECT {USER_COLUMNS}
            FROM users
            WHERE id = $1
            """,
            user_id,
        )
        return User.model_validate(row) if row is not None else None

    async def upsert_user(self, data: UserUpsert) -> User:
        row = await self.database.fetch_one(
            f"""
            INSERT INTO users (id, email, first_name, last_name, profile_image_url)
            VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (id) DO UPDATE
            SET email = EXCLUDED.email,
                first_name = EXCLUDED.first_name,
                last_name = EXCLUDED.last_name,
                profile_image_url = EXCLUDED.profile_image_url,
                updated_at = now()
            RETURNING {USER_COLUMNS}
            """,
            data.id,
            normalize_email(data.email),
            data.first_name,
            data.last_name,
            data.profile_image_url,
        )
        if row is None:
            raise RuntimeError("Failed to upsert user.")
        return User.model_validate(row)


def _to_session(row: dict[str, Any]) -> Session:
    claims = row.get("sess") or {}
    return Session(sid=str(row["sid"]), expire=row["expire"], claims=dict(claims))


class PostgresSessionStore(SessionStore):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def get(self, sid: str) -> Session | None:
        row = await self.database.fetch_one(
            """
            SELECT sid, sess, expire
            FROM sessions
            WHERE sid = $1
            """,
            sid,
        )
        if row is None:
            return None

        session = _to_session(row)
        if session.is_expired(utc_now()):
            await self.destroy(sid)
            return None
        return session

    async def set(self, session: Session) -> None:
        await self.database.execute(
            """
            INSERT INTO sessions (sid, sess, expire)
            VALUES ($1, $2::jsonb, $3)
            ON CONFLICT (sid) DO UPDATE
            SET sess = EXCLUDED.sess,
                expire = EXCLUDED.expire
            """,
            session.sid,
            session.claims,
            session.expire,
        )

    async def destroy(self, sid: str) -> None:
        await self.database.execute("DELETE FROM sessions WHERE sid = $1", sid)

    async def prune_expired(self) -> int:
        tag = await self.database.execute("DELETE FROM sessions WHERE expire <= now()")
        return affected_rows(tag)
