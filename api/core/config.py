"""
Process configuration.

`Settings.from_env()` is called once at startup (see `api/main.py`) and the
resulting object is handed to everything that needs it. Nothing else in the
API should read `os.environ` directly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SESSION_SECRET = "dev-change-this-secret"
DEFAULT_SESSION_TTL_SECONDS = 7 * 24 * 60 * 60
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")

STORAGE_BACKENDS = {"postgres", "memory"}
MIRROR_MODES = {"background", "inline"}


def _env_str(environ: dict[str, str], name: str, default: str = "") -> str:
    return (environ.get(name, "") or "").strip() or default


def _env_int(environ: dict[str, str], name: str, default: int) -> int:
    raw = _env_str(environ, name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(environ: dict[str, str], name: str, default: bool) -> bool:
    raw = _env_str(environ, name).lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_list(environ: dict[str, str], name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env_str(environ, name)
    if not raw:
        return default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = ""
    storage_backend: str = "postgres"
    api_prefix: str = "/api"
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS

    session_secret: str = DEFAULT_SESSION_SECRET
    session_cookie_name: str = "sid"
    session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS
    session_cookie_secure: bool = False

    oidc_issuer: str = ""
    oidc_client_id: str = ""
    oidc_jwks_url: str = ""
    oidc_shared_secret: str = ""

    sheets_spreadsheet_id: str = ""
    sheets_worksheet: str = "Issues"
    google_service_account_file: str = ""
    mirror_mode: str = "background"

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = dict(os.environ if environ is None else environ)

        storage_backend = _env_str(env, "STORAGE_BACKEND", "postgres").lower()
        if storage_backend not in STORAGE_BACKENDS:
            raise RuntimeError(f"STORAGE_BACKEND must be one of {sorted(STORAGE_BACKENDS)}.")

        mirror_mode = _env_str(env, "MIRROR_MODE", "background").lower()
        if mirror_mode not in MIRROR_MODES:
            raise RuntimeError(f"MIRROR_MODE must be one of {sorted(MIRROR_MODES)}.")

        api_prefix = _env_str(env, "API_PREFIX", "/api").rstrip("/")
        if api_prefix and not api_prefix.startswith("/"):
            api_prefix = "/" + api_prefix

        return cls(
            database_url=_env_str(env, "DATABASE_URL"),
            storage_backend=storage_backend,
            api_prefix=api_prefix,
            cors_origins=_env_list(env, "CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
            session_secret=_env_str(env, "SESSION_SECRET", DEFAULT_SESSION_SECRET),
            session_cookie_name=_env_str(env, "SESSION_COOKIE_NAME", "sid"),
            session_ttl_seconds=_env_int(env, "SESSION_TTL_SECONDS", DEFAULT_SESSION_TTL_SECONDS),
            session_cookie_secure=_env_bool(env, "SESSION_COOKIE_SECURE", False),
            oidc_issuer=_env_str(env, "OIDC_ISSUER"),
            oidc_client_id=_env_str(env, "OIDC_CLIENT_ID"),
            oidc_jwks_url=_env_str(env, "OIDC_JWKS_URL"),
            oidc_shared_secret=_env_str(env, "OIDC_SHARED_SECRET"),
            sheets_spreadsheet_id=_env_str(env, "GOOGLE_SHEETS_SPREADSHEET_ID"),
            sheets_worksheet=_env_str(env, "GOOGLE_SHEETS_WORKSHEET", "Issues"),
            google_service_account_file=_env_str(env, "GOOGLE_SERVICE_ACCOUNT_FILE"),
            mirror_mode=mirror_mode,
            log_level=_env_str(env, "LOG_LEVEL", "INFO").upper(),
            log_format=_env_str(env, "LOG_FORMAT", "text").lower(),
        )

    @property
    def mirror_enabled(self) -> bool:
        return bool(self.sheets_spreadsheet_id and self.google_service_account_file)
