"""
App-level tests: health, root and the unexpected-error handler.
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from issues.memory import InMemoryIssueRepository
from main import create_app
from mirror.base import NullMirrorTarget
from mirror.service import MirrorSync


class BrokenRepository(InMemoryIssueRepository):
    async def find(self, filters):
        raise RuntimeError("connection reset")


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_root_reports_mirror(client):
    assert client.get("/").json()["mirror"] == "enabled"


def test_root_without_mirror(settings):
    app = create_app(settings, mirror=MirrorSync(NullMirrorTarget(), mode="inline"))
    with TestClient(app) as c:
        assert c.get("/").json()["mirror"] == "disabled"


def test_unexpected_error_is_generic_500(settings, sheet):
    app = create_app(
        settings,
        issue_repository=BrokenRepository(),
        mirror=MirrorSync(sheet, mode="inline"),
    )
    with TestClient(app, raise_server_exceptions=False) as c:
        resp = c.get("/api/issues")

    assert resp.status_code == 500
    assert resp.json() == {"message": "Internal server error"}
    assert "connection reset" not in resp.text


def test_unknown_route_uses_message_shape(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Not Found"}
