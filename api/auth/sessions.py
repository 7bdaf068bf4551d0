"""
Server-side sessions.

A session row holds the identity-provider claims for a signed-in user and an
expiry. The cookie only carries a signed pointer to the row (see
`auth/security.py`). Expired sessions never authenticate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    sid: str
    expire: datetime
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def subject(self) -> str:
        return str(self.claims.get("sub") or "").strip()

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expire <= (now or utc_now())


def new_session(
    sid: str,
    claims: dict[str, Any],
    *,
    ttl_seconds: int,
    now: datetime | None = None,
) -> Session:
    return Session(
        sid=sid,
        expire=(now or utc_now()) + timedelta(seconds=ttl_seconds),
        claims=dict(claims),
    )


class SessionStore(ABC):
    @abstractmethod
    async def get(self, sid: str) -> Session | None:
        """
        Return the live session for `sid`; expired rows are dropped and None
        is returned.
        """

    @abstractmethod
    async def set(self, session: Session) -> None: ...

    @abstractmethod
    async def destroy(self, sid: str) -> None: ...

    @abstractmethod
    async def prune_expired(self) -> int: ...
