"""
Auth dependencies for protected FastAPI routes.
"""

from __future__ import annotations

from fastapi import Depends, Request

from core.errors import AuthError

from .service import AuthenticatedSubject, AuthService


def _extract_bearer_token(authorization: str | None) -> str | None:
    raw = (authorization or "").strip()
    if not raw:
        return None

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise AuthError("Invalid Authorization header format.")

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise AuthError("Authorization must be: Bearer <token>.")
    return token


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def session_token(request: Request, auth: AuthService) -> str | None:
    """
    The session token from the cookie, or from an `Authorization: Bearer`
    header for non-browser clients.
    """
    token = request.cookies.get(auth.settings.session_cookie_name)
    if token:
        return token
    return _extract_bearer_token(request.headers.get("authorization"))


async def get_current_subject(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> AuthenticatedSubject:
    return await auth.authenticate(session_token(request, auth))
