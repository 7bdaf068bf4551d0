"""
Issue persistence (raw SQL).

`IssueRepository` is the backend interface used by `IssueStore`;
`PostgresIssueRepository` is the production implementation. The in-memory
implementation lives in `issues/memory.py`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import UUID

from core.db import Database, affected_rows

from .schemas import Issue, IssueFilters

ISSUE_COLUMNS = """
    id, title, type, description, impact, status, expected_fix_date,
    created_by, updated_by, created_at, updated_at
"""

# Columns an update may touch, in a fixed order.
UPDATABLE_COLUMNS = ("title", "type", "description", "impact", "status", "expected_fix_date")


class IssueRepository(ABC):
    @abstractmethod
    async def insert(self, issue: Issue) -> Issue: ...

    @abstractmethod
    async def get(self, issue_id: str) -> Issue | None: ...

    @abstractmethod
    async def find(self, filters: IssueFilters) -> list[Issue]: ...

    @abstractmethod
    async def update(
        self,
        issue_id: str,
        changes: dict[str, Any],
        *,
        actor_id: str,
        now: datetime,
    ) -> Issue | None:
        """
        Apply `changes` and stamp `updated_by`/`updated_at` in one atomic step.
        """

    @abstractmethod
    async def delete(self, issue_id: str) -> bool: ...


def _to_issue(row: dict[str, Any]) -> Issue:
    row = dict(row)
    row["id"] = str(row["id"])
    return Issue.model_validate(row)


def like_pattern(search: str) -> str:
    """
    Build an ILIKE substring pattern, escaping the LIKE wildcards in `search`.
    """
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class PostgresIssueRepository(IssueRepository):
    def __init__(self, database: Database) -> None:
        self.database = database

    async def insert(self, issue: Issue) -> Issue:
        row = await self.database.fetch_one(
            f"""
            INSERT INTO issues (
              id, title, type, description, impact, status, expected_fix_date,
              created_by, updated_by, created_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
            RETURNING {ISSUE_COLUMNS}
            """,
            UUID(issue.id),
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
        if row is None:
            raise RuntimeError("Failed to insert issue.")
        return _to_issue(row)

    async def get(self, issue_id: str) -> Issue | None:
        row = await self.database.fetch_one(
            f"""
            SELECT {ISSUE_COLUMNS}
            FROM issues
            WHERE id = $1
            """,
            UUID(issue_id),
        )
        return _to_issue(row) if row is not None else None

    async def find(self, filters: IssueFilters) -> list[Issue]:
        search = like_pattern(filters.search) if filters.search else None
        rows = await self.database.fetch_all(
            f"""
            SELECT {ISSUE_COLUMNS}
            FROM issues
            WHERE ($1::text IS NULL OR status = $1)
              AND ($2::text IS NULL OR type = $2)
              AND (
                $3::text IS NULL
                OR title ILIKE $3
                OR description ILIKE $3
              )
            ORDER BY created_at ASC, id ASC
            """,
            filters.status,
            filters.type,
            search,
        )
        return [_to_issue(r) for r in rows]

    async def update(
        self,
        issue_id: str,
        changes: dict[str, Any],
        *,
        actor_id: str,
        now: datetime,
    ) -> Issue | None:
        columns = [c for c in UPDATABLE_COLUMNS if c in changes]
        # $1 = id, $2 = actor, $3 = now; changed columns follow.
        assignments = [f"{column} = ${i}" for i, column in enumerate(columns, start=4)]
        assignments.append("updated_by = $2")
        assignments.append("updated_at = GREATEST($3, created_at)")

        row = await self.database.fetch_one(
            f"""
            UPDATE issues
            SET {", ".join(assignments)}
            WHERE id = $1
            RETURNING {ISSUE_COLUMNS}
            """,
            UUID(issue_id),
            actor_id,
            now,
            *(changes[c] for c in columns),
        )
        return _to_issue(row) if row is not None else None

    async def delete(self, issue_id: str) -> bool:
        tag = await self.database.execute("DELETE FROM issues WHERE id = $1", UUID(issue_id))
        return affected_rows(tag) > 0
