"""
Issue record store.

Owns the record invariants on top of a backend `IssueRepository`:
- `id`, `created_by`, `created_at` are assigned once, at creation
- `updated_by`, `updated_at` are stamped on every mutation
- `updated_at` never precedes `created_at`
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from . import schemas
from .repository import IssueRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_issue_id(value: str) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


def _require_actor(actor_id: str) -> str:
    actor_id = (actor_id or "").strip()
    if not actor_id:
        raise ValueError("actor_id is required.")
    return actor_id


class IssueStore:
    def __init__(
        self,
        repository: IssueRepository,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.repository = repository
        self._clock = clock

    async def create_issue(
        self,
        data: schemas.IssueCreate | Mapping[str, Any],
        *,
        actor_id: str,
    ) -> schemas.Issue:
        if not isinstance(data, schemas.IssueCreate):
            data = schemas.parse_create(dict(data)).unwrap()
        actor_id = _require_actor(actor_id)

        now = self._clock()
        issue = schemas.Issue(
            id=str(uuid4()),
            **data.model_dump(),
            created_by=actor_id,
            updated_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        created = await self.repository.insert(issue)
        logger.info("issue_created issue_id=%s actor=%s", created.id, actor_id)
        return created

    async def get_issue(self, issue_id: str) -> schemas.Issue | None:
        if not is_issue_id(issue_id):
            return None
        return await self.repository.get(str(UUID(issue_id)))

    async def list_issues(
        self,
        filters: schemas.IssueFilters | Mapping[str, Any] | None = None,
    ) -> list[schemas.Issue]:
        if filters is None:
            filters = schemas.IssueFilters()
        elif not isinstance(filters, schemas.IssueFilters):
            filters = schemas.parse_filters(dict(filters)).unwrap()
        return await self.repository.find(filters)

    async def update_issue(
        self,
        issue_id: str,
        data: schemas.IssueUpdate | Mapping[str, Any],
        *,
        actor_id: str,
    ) -> schemas.Issue | None:
        if not isinstance(data, schemas.IssueUpdate):
            data = schemas.parse_update(dict(data)).unwrap()
        actor_id = _require_actor(actor_id)

        changes = data.changes()
        if not is_issue_id(issue_id):
            return None

        updated = await self.repository.update(
            str(UUID(issue_id)),
            changes,
            actor_id=actor_id,
            now=self._clock(),
        )
        if updated is not None:
            logger.info(
                "issue_updated issue_id=%s actor=%s fields=%s",
                updated.id,
                actor_id,
                ",".join(sorted(changes)) or "-",
            )
        return updated

    async def delete_issue(self, issue_id: str) -> bool:
        if not is_issue_id(issue_id):
            return False
        deleted = await self.repository.delete(str(UUID(issue_id)))
        if deleted:
            logger.info("issue_deleted issue_id=%s", issue_id)
        return deleted
