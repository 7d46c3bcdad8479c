"""Tutor double-booking detection."""

from __future__ import annotations

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol
from uuid import UUID

from tutordesk.core.config import Settings
from tutordesk.core.enums import SessionStatusEnum
from tutordesk.core.metrics import record_conflict
from tutordesk.shared.exceptions import SchedulingConflictException

logger = logging.getLogger(__name__)

# Sessions in these states occupy the tutor's time.
OCCUPYING_STATUSES = (SessionStatusEnum.SCHEDULED, SessionStatusEnum.COMPLETED)


class TutorSessionReader(Protocol):
    """Read side needed to look up a tutor's existing sessions."""

    async def find_tutor_sessions_between(
        self,
        tutor_id: UUID,
        start: datetime,
        end: datetime,
        statuses: Collection[SessionStatusEnum],
        exclude_ids: Collection[UUID] = (),
    ) -> list[Any]:
        """Return sessions of the tutor scheduled within [start, end]."""


@dataclass(frozen=True, slots=True)
class ConflictWindow:
    """Asymmetric window around a candidate instant, both ends inclusive."""

    before: timedelta = timedelta(minutes=30)
    after: timedelta = timedelta(minutes=90)

    @classmethod
    def from_settings(cls, settings: Settings) -> ConflictWindow:
        return cls(
            before=timedelta(minutes=settings.conflict_window_before_minutes),
            after=timedelta(minutes=settings.conflict_window_after_minutes),
        )

    def around(self, candidate: datetime) -> tuple[datetime, datetime]:
        return candidate - self.before, candidate + self.after


class ConflictChecker:
    """Answers whether a tutor is already busy around a candidate instant."""

    def __init__(self, reader: TutorSessionReader, window: ConflictWindow | None = None) -> None:
        self.reader = reader
        self.window = window or ConflictWindow()

    async def find_conflicts(
        self,
        tutor_id: UUID | None,
        candidate: datetime,
        *,
        exclude_ids: Collection[UUID] = (),
    ) -> list[Any]:
        if tutor_id is None:
            return []
        start, end = self.window.around(candidate)
        return await self.reader.find_tutor_sessions_between(
            tutor_id,
            start,
            end,
            OCCUPYING_STATUSES,
            exclude_ids,
        )

    async def has_conflict(
        self,
        tutor_id: UUID | None,
        candidate: datetime,
        *,
        exclude_ids: Collection[UUID] = (),
    ) -> bool:
        return bool(await self.find_conflicts(tutor_id, candidate, exclude_ids=exclude_ids))

    async def ensure_free(
        self,
        tutor_id: UUID | None,
        candidate: datetime,
        *,
        operation: str,
        exclude_ids: Collection[UUID] = (),
    ) -> None:
        """Raise ``SchedulingConflictException`` when the tutor is busy at ``candidate``."""
        conflicts = await self.find_conflicts(tutor_id, candidate, exclude_ids=exclude_ids)
        if not conflicts:
            return
        record_conflict(operation, rejected=True)
        logger.warning(
            "Rejected %s for tutor %s at %s: %s conflicting session(s)",
            operation,
            tutor_id,
            candidate.isoformat(),
            len(conflicts),
        )
        raise SchedulingConflictException(
            f"Tutor already has a session near {candidate.isoformat()}",
            conflicting_session_ids=[str(row.id) for row in conflicts],
        )
