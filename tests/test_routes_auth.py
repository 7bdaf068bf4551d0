"""
Tests for the /api/auth routes and the session gate.
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta

import jwt
import pytest

from auth import security
from auth.sessions import Session, utc_now

from conftest import OIDC_SECRET, SESSION_SECRET, make_id_token


class TestCallback:

    def test_sign_in_upserts_user_and_sets_cookie(self, client):
        resp = client.post(
            "/api/auth/callback",
            json={"idToken": make_id_token("u1", email="Una@Example.com", first_name="Una", last_name="Lee")},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == "u1"
        assert body["email"] == "una@example.com"
        assert body["firstName"] == "Una"
        assert body["lastName"] == "Lee"
        assert "sid" in resp.cookies
        assert "httponly" in resp.headers["set-cookie"].lower()

    def test_second_sign_in_overwrites_profile_keeps_id(self, client, sign_in):
        first = sign_in("u1", email="old@example.com", first_name="Old")
        second = sign_in("u1", email="new@example.com", picture="https://img.example.com/a.png")

        assert second["id"] == first["id"] == "u1"
        assert second["email"] == "new@example.com"
        assert second["firstName"] is None
        assert second["profileImageUrl"] == "https://img.example.com/a.png"
        assert second["createdAt"] == first["createdAt"]

    def test_bad_signature_rejected(self, client):
        token = jwt.encode(
            {"sub": "u1", "exp": int(time.time()) + 60},
            "some-other-secret-0123456789abcdef",
            algorithm="HS256",
        )
        resp = client.post("/api/auth/callback", json={"idToken": token})
        assert resp.status_code == 401
        assert "sid" not in resp.cookies

    def test_expired_id_token_rejected(self, client):
        token = jwt.encode({"sub": "u1", "exp": int(time.time()) - 10}, OIDC_SECRET, algorithm="HS256")
        assert client.post("/api/auth/callback", json={"idToken": token}).status_code == 401

    def test_missing_id_token(self, client):
        resp = client.post("/api/auth/callback", json={})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["field"] == "idToken"


class TestCurrentUser:

    def test_requires_session(self, client):
        resp = client.get("/api/auth/user")
        assert resp.status_code == 401
        assert "message" in resp.json()

    def test_returns_stored_user(self, authed_client):
        resp = authed_client.get("/api/auth/user")
        assert resp.status_code == 200
        assert resp.json()["id"] == "u1"
        assert resp.json()["email"] == "u1@example.com"

    def test_bearer_header_accepted(self, client, sign_in):
        sign_in("u1")
        token = client.cookies.get("sid")
        client.cookies.clear()

        resp = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["id"] == "u1"

    def test_malformed_authorization_header(self, client):
        resp = client.get("/api/auth/user", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401

    def test_expired_session_rejected(self, client, app):
        auth = app.state.auth_service
        asyncio.run(
            auth.sessions.set(
                Session(sid="stale", expire=utc_now() - timedelta(seconds=1), claims={"sub": "u1"})
            )
        )
        token = security.build_session_token(session_id="stale", secret=SESSION_SECRET, ttl_seconds=60)

        resp = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized"}
        assert asyncio.run(auth.sessions.get("stale")) is None

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"Cookie": "sid=forged.token.value"},
            {"Authorization": "Token abc"},
        ],
    )
    def test_rejection_body_is_generic(self, client, headers):
        resp = client.get("/api/auth/user", headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"message": "Unauthorized"}

    def test_rejection_reason_is_logged_at_debug(self, client, caplog):
        with caplog.at_level("DEBUG", logger="core.errors"):
            client.get("/api/auth/user", headers={"Cookie": "sid=forged.token.value"})
        assert any("Invalid session token." in r.getMessage() for r in caplog.records)

    def test_unknown_session_rejected(self, client):
        token = security.build_session_token(session_id="never-issued", secret=SESSION_SECRET, ttl_seconds=60)
        resp = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


class TestLogout:

    def test_logout_destroys_session(self, client, sign_in):
        sign_in("u1")
        token = client.cookies.get("sid")

        resp = client.post("/api/auth/logout")
        assert resp.status_code == 204

        client.cookies.clear()
        resp = client.get("/api/auth/user", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_logout_without_session(self, client):
        assert client.post("/api/auth/logout").status_code == 204
