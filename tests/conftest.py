"""
Shared fixtures.

Provides an app wired with in-memory stores and a fake spreadsheet, plus
helpers to sign a test client in through the identity-provider callback.
"""

from __future__ import annotations

import time

import jwt
import pytest
from fastapi.testclient import TestClient

from core.config import Settings
from core.errors import SyncError
from main import create_app
from mirror.base import HEADER, MirrorTarget
from mirror.service import MirrorSync

SESSION_SECRET = "test-session-secret-0123456789abcdef"
OIDC_SECRET = "test-oidc-shared-secret-0123456789abcdef"


class FakeSheet(MirrorTarget):
    """In-memory keyed sheet that records every call."""

    def __init__(self) -> None:
        self.header: list[str] | None = None
        self.rows: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.init_calls = 0
        self.fail_init = False
        self.fail_writes = False

    async def ensure_initialized(self) -> None:
        self.init_calls += 1
        if self.fail_init:
            raise SyncError("sheet unavailable")
        if self.header is None:
            self.header = list(HEADER)

    async def upsert_row(self, key: str, values: list[str]) -> None:
        self.calls.append(("upsert", key))
        if self.fail_writes:
            raise SyncError("write rejected")
        self.rows[key] = list(values)

    async def delete_row(self, key: str) -> None:
        self.calls.append(("delete", key))
        if self.fail_writes:
            raise SyncError("write rejected")
        self.rows.pop(key, None)


def make_id_token(sub: str, **claims) -> str:
    payload = {"sub": sub, "exp": int(time.time()) + 300, **claims}
    return jwt.encode(payload, OIDC_SECRET, algorithm="HS256")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        session_secret=SESSION_SECRET,
        oidc_shared_secret=OIDC_SECRET,
        mirror_mode="inline",
    )


@pytest.fixture
def sheet() -> FakeSheet:
    return FakeSheet()


@pytest.fixture
def app(settings, sheet):
    return create_app(settings, mirror=MirrorSync(sheet, mode=settings.mirror_mode))


@pytest.fixture
def client(app):
    """Unauthenticated test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def sign_in(client):
    """Sign the shared client in as `sub`; returns the user JSON."""

    def _sign_in(sub: str = "u1", **claims) -> dict:
        resp = client.post("/api/auth/callback", json={"idToken": make_id_token(sub, **claims)})
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _sign_in


@pytest.fixture
def authed_client(client, sign_in):
    sign_in("u1", email="U1@Example.com", first_name="Una")
    return client


@pytest.fixture
def issue_payload() -> dict:
    return {
        "title": "Crash on save",
        "type": "issue",
        "description": "Saving a large document crashes the editor.",
        "impact": "High",
    }
