"""
Auth security helpers.

- session ids and the signed token carried by the session cookie
- identity-provider ID token verification
"""

from __future__ import annotations

import secrets
import time
from functools import lru_cache
from typing import Any

import jwt

from core.config import Settings

SESSION_TOKEN_ALGORITHM = "HS256"


class AuthSecurityError(RuntimeError):
    pass


def now_epoch_s() -> int:
    return int(time.time())


def build_session_id() -> str:
    # URL-safe random string; the database key for the session row.
    return secrets.token_urlsafe(32)


def build_session_token(*, session_id: str, secret: str, ttl_seconds: int) -> str:
    issued_at = now_epoch_s()
    payload = {
        "sid": session_id,
        "type": "session",
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm=SESSION_TOKEN_ALGORITHM)


def decode_session_token(token: str, *, secret: str) -> str:
    """
    Verify the cookie token and return the session id it names.
    """
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("Session token is empty.")

    try:
        payload = jwt.decode(raw, secret, algorithms=[SESSION_TOKEN_ALGORITHM])
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid session token.") from exc

    token_type = str(payload.get("type") or "").strip().lower()
    if token_type != "session":
        raise AuthSecurityError("Token is not a session token.")

    session_id = str(payload.get("sid") or "").strip()
    if not session_id:
        raise AuthSecurityError("Session token has no session id.")
    return session_id


@lru_cache(maxsize=4)
def _jwk_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url, cache_keys=True)


def decode_identity_token(token: str, *, settings: Settings) -> dict[str, Any]:
    """
    Verify an OpenID Connect ID token from the identity provider.

    With OIDC_JWKS_URL set the signing key comes from the provider's JWKS
    (RS256/ES256). Otherwise OIDC_SHARED_SECRET is used with HS256.
    """
    raw = (token or "").strip()
    if not raw:
        raise AuthSecurityError("ID token is empty.")

    options = {
        "require": ["sub", "exp"],
        "verify_aud": bool(settings.oidc_client_id),
        "verify_iss": bool(settings.oidc_issuer),
    }
    kwargs: dict[str, Any] = {"options": options}
    if settings.oidc_client_id:
        kwargs["audience"] = settings.oidc_client_id
    if settings.oidc_issuer:
        kwargs["issuer"] = settings.oidc_issuer

    try:
        if settings.oidc_jwks_url:
            signing_key = _jwk_client(settings.oidc_jwks_url).get_signing_key_from_jwt(raw)
            claims = jwt.decode(raw, signing_key.key, algorithms=["RS256", "ES256"], **kwargs)
        elif settings.oidc_shared_secret:
            claims = jwt.decode(raw, settings.oidc_shared_secret, algorithms=["HS256"], **kwargs)
        else:
            raise AuthSecurityError("Identity provider is not configured.")
    except jwt.PyJWKClientError as exc:
        raise AuthSecurityError("Could not fetch identity provider signing key.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthSecurityError("Invalid ID token.") from exc

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise AuthSecurityError("ID token has no subject.")
    return claims
