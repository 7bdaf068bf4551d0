"""
In-memory issue repository.

Used with `STORAGE_BACKEND=memory` (local dev without Postgres) and in tests.
Records are kept in insertion order, which is also creation order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .repository import UPDATABLE_COLUMNS, IssueRepository
from .schemas import Issue, IssueFilters


def _matches(issue: Issue, filters: IssueFilters) -> bool:
    if filters.status is not None and issue.status != filters.status:
        return False
    if filters.type is not None and issue.type != filters.type:
        return False
    if filters.search:
        needle = filters.search.casefold()
        if needle not in issue.title.casefold() and needle not in issue.description.casefold():
            return False
    return True


class InMemoryIssueRepository(IssueRepository):
    def __init__(self) -> None:
        self._issues: dict[str, Issue] = {}

    async def insert(self, issue: Issue) -> Issue:
        if issue.id in self._issues:
            raise RuntimeError(f"Duplicate issue id {issue.id}.")
        self._issues[issue.id] = issue.model_copy()
        return issue.model_copy()

    async def get(self, issue_id: str) -> Issue | None:
        issue = self._issues.get(issue_id)
        return issue.model_copy() if issue is not None else None

    async def find(self, filters: IssueFilters) -> list[Issue]:
        return [issue.model_copy() for issue in self._issues.values() if _matches(issue, filters)]

    async def update(
        self,
        issue_id: str,
        changes: dict[str, Any],
        *,
        actor_id: str,
        now: datetime,
    ) -> Issue | None:
        current = self._issues.get(issue_id)
        if current is None:
            return None

        update = {c: changes[c] for c in UPDATABLE_COLUMNS if c in changes}
        update["updated_by"] = actor_id
        update["updated_at"] = max(now, current.created_at)

        updated = current.model_copy(update=update)
        self._issues[issue_id] = updated
        return updated.model_copy()

    async def delete(self, issue_id: str) -> bool:
        return self._issues.pop(issue_id, None) is not None
