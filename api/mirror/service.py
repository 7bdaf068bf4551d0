"""
Best-effort mirroring of issues into the spreadsheet.

Rules:
- a sync failure is logged and swallowed; the committed store write stands
- no automatic retry
- syncs for the same issue id run in submission order, whether the caller
  awaits them (inline mode) or not (background mode)
- once an issue id has been deleted, create/update syncs for it are skipped,
  so an update that commits before a delete but is submitted after it cannot
  bring the row back
- the target is initialized lazily before the first sync; a failed init is
  attempted again on the next sync
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Literal

from core.config import Settings
from issues.schemas import Issue

from .base import MirrorTarget, NullMirrorTarget, issue_row
from .sheets import ServiceAccount, SheetsClient

Operation = Literal["create", "update", "delete"]
OPERATIONS = ("create", "update", "delete")

logger = logging.getLogger(__name__)


class MirrorSync:
    def __init__(self, target: MirrorTarget, *, mode: str = "background") -> None:
        if mode not in {"background", "inline"}:
            raise ValueError(f"Unknown mirror mode: {mode}")
        self.target = target
        self.mode = mode
        self._initialized = False
        self._init_lock = asyncio.Lock()
        # Last pending task per issue id.
        self._tails: dict[str, asyncio.Task[bool]] = {}
        # Issue ids are never reused, so a deleted id never gets a row back.
        self._deleted: set[str] = set()

    @property
    def enabled(self) -> bool:
        return self.target.enabled

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return None
        async with self._init_lock:
            if self._initialized:
                return None
            await self.target.ensure_initialized()
            self._initialized = True
            logger.info("mirror_initialized target=%s", type(self.target).__name__)

    async def initialize(self) -> bool:
        """
        Eager initialization at startup. Failure is logged; the next sync
        tries again.
        """
        if not self.enabled:
            return False
        try:
            await self._ensure_initialized()
        except Exception:
            logger.exception("mirror_init_failed target=%s", type(self.target).__name__)
            return False
        return True

    def _accept(self, issue: Issue, operation: Operation) -> bool:
        """
        Record deletes; refuse create/update for an id already deleted.
        Called when a sync is submitted, not when it runs.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown mirror operation: {operation}")
        if operation == "delete":
            self._deleted.add(issue.id)
            return True
        if issue.id in self._deleted:
            logger.info("mirror_sync_skipped issue_id=%s operation=%s reason=deleted", issue.id, operation)
            return False
        return True

    async def _apply(self, issue: Issue, operation: Operation) -> bool:
        if not self.enabled:
            logger.debug("mirror_disabled issue_id=%s operation=%s", issue.id, operation)
            return False

        try:
            await self._ensure_initialized()
            if operation == "delete":
                await self.target.delete_row(issue.id)
            else:
                await self.target.upsert_row(issue.id, issue_row(issue))
        except Exception as exc:
            logger.exception(
                "mirror_sync_failed issue_id=%s operation=%s error=%s",
                issue.id,
                operation,
                exc,
            )
            return False

        logger.info("mirror_sync_complete issue_id=%s operation=%s", issue.id, operation)
        return True

    async def sync_issue(self, issue: Issue, operation: Operation) -> bool:
        """
        Apply one operation to the mirror. Never raises; returns False on
        failure or when the operation was skipped.
        """
        if not self._accept(issue, operation):
            return False
        return await self._apply(issue, operation)

    async def _run_after(
        self,
        previous: asyncio.Task[bool] | None,
        issue: Issue,
        operation: Operation,
    ) -> bool:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        return await self._apply(issue, operation)

    async def _skipped(self) -> bool:
        return False

    def _forget(self, key: str, task: asyncio.Task[bool]) -> None:
        if self._tails.get(key) is task:
            del self._tails[key]

    def dispatch(self, issue: Issue, operation: Operation) -> asyncio.Task[bool]:
        """
        Schedule a sync without waiting for it, behind any pending sync for
        the same issue id.
        """
        if not self._accept(issue, operation):
            return asyncio.create_task(self._skipped())

        key = issue.id
        task = asyncio.create_task(self._run_after(self._tails.get(key), issue, operation))
        self._tails[key] = task
        task.add_done_callback(partial(self._forget, key))
        return task

    async def submit(self, issue: Issue, operation: Operation) -> None:
        """
        Entry point for request handlers. Inline mode waits for the sync to
        finish; background mode returns at once.
        """
        task = self.dispatch(issue, operation)
        if self.mode == "inline":
            await asyncio.shield(task)

    @property
    def pending(self) -> int:
        return len(self._tails)

    async def drain(self) -> None:
        """
        Wait for every pending sync (called at shutdown).
        """
        while self._tails:
            await asyncio.gather(*list(self._tails.values()), return_exceptions=True)


def build_mirror(settings: Settings) -> MirrorSync:
    if not settings.mirror_enabled:
        logger.info("mirror_disabled reason=not_configured")
        return MirrorSync(NullMirrorTarget(), mode=settings.mirror_mode)

    target = SheetsClient(
        spreadsheet_id=settings.sheets_spreadsheet_id,
        worksheet=settings.sheets_worksheet,
        account=ServiceAccount.from_file(settings.google_service_account_file),
    )
    return MirrorSync(target, mode=settings.mirror_mode)
