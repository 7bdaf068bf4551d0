"""
Auth business logic.

`AuthService` resolves a session token to an authenticated subject and runs
the sign-in / sign-out flow. It is built once by the app factory with the
configured user repository and session store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from core.config import Settings
from core.errors import AuthError

from . import schemas, security
from .repository import UserRepository
from .sessions import SessionStore, new_session, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedSubject:
    user_id: str
    session_id: str


def _user_from_claims(claims: dict[str, Any]) -> schemas.UserUpsert:
    def _claim(name: str) -> str | None:
        value = claims.get(name)
        if value is None:
            return None
        return str(value).strip() or None

    return schemas.UserUpsert(
        id=str(claims["sub"]).strip(),
        email=_claim("email"),
        first_name=_claim("first_name") or _claim("given_name"),
        last_name=_claim("last_name") or _claim("family_name"),
        profile_image_url=_claim("profile_image_url") or _claim("picture"),
    )


class AuthService:
    def __init__(
        self,
        settings: Settings,
        *,
        users: UserRepository,
        sessions: SessionStore,
    ) -> None:
        self.settings = settings
        self.users = users
        self.sessions = sessions

    async def authenticate(self, token: str | None) -> AuthenticatedSubject:
        if not (token or "").strip():
            raise AuthError("Missing session.")

        try:
            session_id = security.decode_session_token(token or "", secret=self.settings.session_secret)
        except security.AuthSecurityError as exc:
            raise AuthError(str(exc)) from exc

        session = await self.sessions.get(session_id)
        if session is None or session.is_expired(utc_now()):
            raise AuthError("Session is expired or unknown.")

        subject = session.subject
        if not subject:
            raise AuthError("Session has no subject.")
        return AuthenticatedSubject(user_id=subject, session_id=session.sid)

    async def sign_in(self, id_token: str) -> tuple[schemas.User, str]:
        """
        Verify the identity-provider token, upsert the user and open a
        session. Returns the user and the signed session token for the cookie.
        """
        try:
            claims = security.decode_identity_token(id_token, settings=self.settings)
        except security.AuthSecurityError as exc:
            raise AuthError(str(exc)) from exc

        user = await self.users.upsert_user(_user_from_claims(claims))
        token = await self.open_session(claims)
        logger.info("sign_in user_id=%s", user.id)
        return user, token

    async def open_session(self, claims: dict[str, Any]) -> str:
        session = new_session(
            security.build_session_id(),
            claims,
            ttl_seconds=self.settings.session_ttl_seconds,
        )
        await self.sessions.set(session)
        return security.build_session_token(
            session_id=session.sid,
            secret=self.settings.session_secret,
            ttl_seconds=self.settings.session_ttl_seconds,
        )

    async def sign_out(self, token: str | None) -> None:
        if not (token or "").strip():
            return None
        try:
            session_id = security.decode_session_token(token or "", secret=self.settings.session_secret)
        except security.AuthSecurityError:
            # Nothing to destroy for a token we never issued.
            return None
        await self.sessions.destroy(session_id)
        logger.info("sign_out session_id=%s", session_id[:8])

    async def current_user(self, subject: AuthenticatedSubject) -> schemas.User:
        user = await self.users.get_user(subject.user_id)
        if user is None:
            raise AuthError("User not found.")
        return user
