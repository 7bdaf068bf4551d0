"""
Auth API endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response, status

from core.errors import AuthError

from . import schemas
from .dependencies import get_auth_service, get_current_subject, session_token
from .service import AuthenticatedSubject, AuthService

router = APIRouter()


def _set_session_cookie(response: Response, auth: AuthService, token: str) -> None:
    response.set_cookie(
        key=auth.settings.session_cookie_name,
        value=token,
        max_age=auth.settings.session_ttl_seconds,
        httponly=True,
        secure=auth.settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


@router.get("/auth/user", response_model=schemas.User)
async def current_user(
    subject: AuthenticatedSubject = Depends(get_current_subject),
    auth: AuthService = Depends(get_auth_service),
) -> schemas.User:
    return await auth.current_user(subject)


@router.post("/auth/callback", response_model=schemas.User)
async def callback(
    payload: schemas.CallbackRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> schemas.User:
    """
    Identity-provider sign-in: exchange a verified ID token for a session.
    """
    user, token = await auth.sign_in(payload.id_token)
    _set_session_cookie(response, auth, token)
    return user


@router.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    request: Request,
    auth: AuthService = Depends(get_auth_service),
) -> Response:
    try:
        token = session_token(request, auth)
    except AuthError:
        token = None
    await auth.sign_out(token)

    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(auth.settings.session_cookie_name, path="/")
    return response
