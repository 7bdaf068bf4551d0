"""
Mirror target interface and the row layout of a mirrored issue.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from issues.schemas import Issue

HEADER = (
    "ID",
    "Title",
    "Type",
    "Description",
    "Impact",
    "Status",
    "Expected Fix Date",
    "Created By",
    "Updated By",
    "Created At",
    "Updated At",
)


def _cell(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def issue_row(issue: Issue) -> list[str]:
    """
    One spreadsheet row per issue, in HEADER order. Column A is the key.
    """
    return [
        _cell(v)
        for v in (
            issue.id,
            issue.title,
            issue.type,
            issue.description,
            issue.impact,
            issue.status,
            issue.expected_fix_date,
            issue.created_by,
            issue.updated_by,
            issue.created_at,
            issue.updated_at,
        )
    ]


class MirrorTarget(ABC):
    """
    A keyed, tabular destination. Implementations must make `upsert_row`
    replace an existing row with the same key rather than add a second one.
    """

    enabled = True

    @abstractmethod
    async def ensure_initialized(self) -> None:
        """
        Create the worksheet/header if missing. Safe to call repeatedly.
        """

    @abstractmethod
    async def upsert_row(self, key: str, values: list[str]) -> None: ...

    @abstractmethod
    async def delete_row(self, key: str) -> None: ...


class NullMirrorTarget(MirrorTarget):
    """
    Used when no spreadsheet is configured.
    """

    enabled = False

    async def ensure_initialized(self) -> None:
        return None

    async def upsert_row(self, key: str, values: list[str]) -> None:
        return None

    async def delete_row(self, key: str) -> None:
        return None
