"""
Pydantic schemas for issues.

JSON uses camelCase (`expectedFixDate`); Python attributes are snake_case.
Request bodies go through `parse_create` / `parse_update`, which return a
`ValidationResult` instead of raising, so handlers treat both the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from core.errors import FieldError, ValidationError, field_errors_from_pydantic
from core.schemas import CamelModel

IssueType = Literal["issue", "feature-request"]
Impact = Literal["Low", "Medium", "High", "Critical"]
IssueStatus = Literal["open", "assigned", "closed"]

ISSUE_TYPES: tuple[str, ...] = get_args(IssueType)
IMPACTS: tuple[str, ...] = get_args(Impact)
STATUSES: tuple[str, ...] = get_args(IssueStatus)


class IssueCreate(CamelModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    type: IssueType
    description: str = Field(..., min_length=1)
    impact: Impact
    status: IssueStatus = "open"
    expected_fix_date: datetime | None = None


class IssueUpdate(CamelModel):
    """
    Partial update. Only fields present in the body are applied; an explicit
    `null` is only accepted for `expectedFixDate` (clears it).
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=255)
    type: IssueType | None = None
    description: str | None = Field(default=None, min_length=1)
    impact: Impact | None = None
    status: IssueStatus | None = None
    expected_fix_date: datetime | None = None

    @model_validator(mode="after")
    def _reject_nulls(self) -> "IssueUpdate":
        for name in self.model_fields_set:
            if name != "expected_fix_date" and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null.")
        return self

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class Issue(CamelModel):
    id: str
    title: str
    type: IssueType
    description: str
    impact: Impact
    status: IssueStatus
    expected_fix_date: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    created_at: datetime
    updated_at: datetime


class PublicIssue(CamelModel):
    """
    Issue as served on unauthenticated routes: no actor fields.
    """

    id: str
    title: str
    type: IssueType
    description: str
    impact: Impact
    status: IssueStatus
    expected_fix_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


def redact(issue: Issue) -> PublicIssue:
    return PublicIssue.model_validate(issue.model_dump(exclude={"created_by", "updated_by"}))


class IssueFilters(BaseModel):
    status: IssueStatus | None = None
    type: IssueType | None = None
    search: str | None = None

    @field_validator("status", "type", "search", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value


T = TypeVar("T")


@dataclass(frozen=True)
class ValidationResult(Generic[T]):
    value: T | None = None
    errors: tuple[FieldError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> T:
        if self.errors:
            raise ValidationError(list(self.errors))
        if self.value is None:
            raise RuntimeError("ValidationResult has neither a value nor errors.")
        return self.value


M = TypeVar("M", bound=BaseModel)


def _parse(model: type[M], payload: Any) -> ValidationResult[M]:
    if not isinstance(payload, dict):
        return ValidationResult(
            errors=(FieldError(field="body", message="Expected a JSON object.", type="dict_type"),)
        )
    try:
        return ValidationResult(value=model.model_validate(payload))
    except PydanticValidationError as exc:
        return ValidationResult(errors=tuple(field_errors_from_pydantic(exc.errors())))


def parse_create(payload: Any) -> ValidationResult[IssueCreate]:
    return _parse(IssueCreate, payload)


def parse_update(payload: Any) -> ValidationResult[IssueUpdate]:
    return _parse(IssueUpdate, payload)


def parse_filters(payload: dict[str, Any]) -> ValidationResult[IssueFilters]:
    return _parse(IssueFilters, payload)
