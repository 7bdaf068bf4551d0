"""
Issue API endpoints.

Reads are public and served redacted (no createdBy/updatedBy).
Writes need a session and are mirrored to the spreadsheet afterwards.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status

from auth import dependencies as auth_dependencies
from auth.service import AuthenticatedSubject
from core.errors import NotFoundError, ValidationError
from mirror.service import MirrorSync

from . import schemas
from .store import IssueStore

router = APIRouter()


def get_issue_store(request: Request) -> IssueStore:
    return request.app.state.issue_store


def get_mirror(request: Request) -> MirrorSync:
    return request.app.state.mirror


def _issue_not_found() -> NotFoundError:
    return NotFoundError("Issue not found")


@router.get("/issues", response_model=list[schemas.PublicIssue])
async def list_issues(
    status_filter: str | None = Query(default=None, alias="status"),
    type_filter: str | None = Query(default=None, alias="type"),
    search: str | None = Query(default=None, max_length=500),
    store: IssueStore = Depends(get_issue_store),
) -> list[schemas.PublicIssue]:
    result = schemas.parse_filters({"status": status_filter, "type": type_filter, "search": search})
    if not result.ok:
        raise ValidationError(list(result.errors))

    issues = await store.list_issues(result.value)
    return [schemas.redact(issue) for issue in issues]


@router.get("/issues/{issue_id}", response_model=schemas.PublicIssue)
async def get_issue(
    issue_id: str,
    store: IssueStore = Depends(get_issue_store),
) -> schemas.PublicIssue:
    issue = await store.get_issue(issue_id)
    if issue is None:
        raise _issue_not_found()
    return schemas.redact(issue)


@router.post("/issues", response_model=schemas.Issue, status_code=status.HTTP_201_CREATED)
async def create_issue(
    payload: Any = Body(default=None),
    subject: AuthenticatedSubject = Depends(auth_dependencies.get_current_subject),
    store: IssueStore = Depends(get_issue_store),
    mirror: MirrorSync = Depends(get_mirror),
) -> schemas.Issue:
    result = schemas.parse_create(payload)
    if not result.ok:
        raise ValidationError(list(result.errors))

    issue = await store.create_issue(result.value, actor_id=subject.user_id)
    await mirror.submit(issue, "create")
    return issue


@router.put("/issues/{issue_id}", response_model=schemas.Issue)
async def update_issue(
    issue_id: str,
    payload: Any = Body(default=None),
    subject: AuthenticatedSubject = Depends(auth_dependencies.get_current_subject),
    store: IssueStore = Depends(get_issue_store),
    mirror: MirrorSync = Depends(get_mirror),
) -> schemas.Issue:
    result = schemas.parse_update(payload)
    if not result.ok:
        raise ValidationError(list(result.errors))

    issue = await store.update_issue(issue_id, result.value, actor_id=subject.user_id)
    if issue is None:
        raise _issue_not_found()

    await mirror.submit(issue, "update")
    return issue


@router.delete("/issues/{issue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_issue(
    issue_id: str,
    subject: AuthenticatedSubject = Depends(auth_dependencies.get_current_subject),
    store: IssueStore = Depends(get_issue_store),
    mirror: MirrorSync = Depends(get_mirror),
) -> Response:
    # Fetch first: the mirror needs the record to remove its row.
    issue = await store.get_issue(issue_id)
    if issue is None:
        raise _issue_not_found()

    if not await store.delete_issue(issue_id):
        raise _issue_not_found()

    await mirror.submit(issue, "delete")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
