"""
Tests for issue request validation and redaction.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from core.errors import ValidationError
from issues import schemas


def _valid() -> dict:
    return {
        "title": "Crash on save",
        "type": "issue",
        "description": "Editor crashes.",
        "impact": "Critical",
    }


class TestParseCreate:

    def test_valid_payload(self):
        result = schemas.parse_create(_valid())
        assert result.ok
        assert result.value.status == "open"
        assert result.value.expected_fix_date is None

    @pytest.mark.parametrize("field", ["title", "type", "description", "impact"])
    def test_required_fields(self, field):
        payload = _valid()
        del payload[field]

        result = schemas.parse_create(payload)
        assert not result.ok
        assert [e.field for e in result.errors] == [field]

    def test_whitespace_title_rejected(self):
        result = schemas.parse_create({**_valid(), "title": "   "})
        assert not result.ok
        assert result.errors[0].field == "title"

    @pytest.mark.parametrize("field", ["id", "createdBy", "updatedBy", "createdAt", "updatedAt", "owner"])
    def test_server_owned_and_unknown_fields_rejected(self, field):
        result = schemas.parse_create({**_valid(), field: "x"})
        assert not result.ok
        assert result.errors[0].field == field
        assert result.errors[0].type == "extra_forbidden"

    def test_expected_fix_date_parsed(self):
        result = schemas.parse_create({**_valid(), "expectedFixDate": "2026-05-01T09:30:00Z"})
        assert result.value.expected_fix_date == datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("payload", [None, [], "text", 3])
    def test_non_object_body(self, payload):
        result = schemas.parse_create(payload)
        assert not result.ok
        assert result.errors[0].field == "body"

    def test_unwrap_raises_validation_error(self):
        result = schemas.parse_create({})
        with pytest.raises(ValidationError) as exc_info:
            result.unwrap()
        assert len(exc_info.value.errors) == 4

    def test_unwrap_empty_result_raises(self):
        with pytest.raises(RuntimeError):
            schemas.ValidationResult().unwrap()


class TestParseUpdate:

    def test_empty_update_is_valid(self):
        result = schemas.parse_update({})
        assert result.ok
        assert result.value.changes() == {}

    def test_only_sent_fields_are_changes(self):
        result = schemas.parse_update({"status": "assigned", "impact": "Low"})
        assert result.value.changes() == {"status": "assigned", "impact": "Low"}

    def test_null_title_rejected(self):
        result = schemas.parse_update({"title": None})
        assert not result.ok

    def test_null_expected_fix_date_allowed(self):
        result = schemas.parse_update({"expectedFixDate": None})
        assert result.ok
        assert result.value.changes() == {"expected_fix_date": None}

    def test_enum_constraints(self):
        assert not schemas.parse_update({"impact": "Severe"}).ok
        assert not schemas.parse_update({"type": "bug"}).ok
        assert not schemas.parse_update({"status": "OPEN"}).ok

    def test_id_cannot_be_changed(self):
        result = schemas.parse_update({"id": "00000000-0000-4000-8000-000000000000"})
        assert not result.ok


class TestFilters:

    def test_invalid_status_filter(self):
        result = schemas.parse_filters({"status": "pending", "type": None, "search": None})
        assert not result.ok
        assert result.errors[0].field == "status"

    def test_blank_values_become_none(self):
        result = schemas.parse_filters({"status": "", "type": "  ", "search": " crash "})
        assert result.value.status is None
        assert result.value.type is None
        assert result.value.search == "crash"


class TestRedact:

    def test_actor_fields_removed(self):
        now = datetime.now(timezone.utc)
        issue = schemas.Issue(
            id="00000000-0000-4000-8000-000000000000",
            title="t",
            type="issue",
            description="d",
            impact="Low",
            status="open",
            created_by="u1",
            updated_by="u2",
            created_at=now,
            updated_at=now,
        )

        body = schemas.redact(issue).model_dump(by_alias=True)
        assert "createdBy" not in body
        assert "updatedBy" not in body
        assert body["id"] == issue.id
        assert body["createdAt"] == now
