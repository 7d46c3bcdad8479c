"""Initial session generation for new batches."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from tutordesk.core.enums import SessionStatusEnum
from tutordesk.core.metrics import record_conflict
from tutordesk.modules.sessions.calendar import CalendarPolicy, PatternSlot, resolve_session_dates
from tutordesk.modules.sessions.conflicts import ConflictChecker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionDraft:
    """Unsaved session produced by the generator."""

    session_number: int
    curriculum_topic: str
    scheduled_at: datetime
    assigned_tutor_id: UUID | None
    status: SessionStatusEnum = SessionStatusEnum.SCHEDULED
    warnings: list[str] = field(default_factory=list)


def curriculum_topic(curriculum: Iterable[Mapping[str, Any]] | None, session_number: int) -> str:
    """Topic for ``session_number``; ``"Session N"`` when the curriculum has no entry."""
    for item in curriculum or ():
        number = item.get("session_number", item.get("session"))
        if number == session_number and item.get("topic"):
            return str(item["topic"])
    return f"Session {session_number}"


def resolve_target_count(course: Any, override: int | None, default: int) -> int:
    if override is not None:
        return override
    total = getattr(course, "total_sessions", None)
    return total if total else default


class SessionGenerator:
    """Resolves a batch pattern into session drafts and flags tutor conflicts.

    Conflicts found here are advisory: the draft is kept and the conflict is
    reported in ``SessionDraft.warnings``.
    """

    def __init__(self, conflict_checker: ConflictChecker, policy: CalendarPolicy) -> None:
        self.conflict_checker = conflict_checker
        self.policy = policy

    async def generate(
        self,
        *,
        start_at: datetime,
        pattern: list[PatternSlot],
        course: Any,
        tutor_id: UUID | None,
        target_count: int,
    ) -> list[SessionDraft]:
        slots = resolve_session_dates(start_at, pattern, target_count, self.policy)
        curriculum = getattr(course, "curriculum", None)

        drafts: list[SessionDraft] = []
        for slot in slots:
            draft = SessionDraft(
                session_number=slot.session_number,
                curriculum_topic=curriculum_topic(curriculum, slot.session_number),
                scheduled_at=slot.scheduled_at,
                assigned_tutor_id=tutor_id,
            )
            conflicts = await self.conflict_checker.find_conflicts(tutor_id, slot.scheduled_at)
            if conflicts:
                record_conflict("generate", rejected=False)
                draft.warnings.append(
                    f"Tutor has {len(conflicts)} other session(s) near {slot.scheduled_at.isoformat()}",
                )
            drafts.append(draft)

        flagged = sum(1 for draft in drafts if draft.warnings)
        if flagged:
            logger.warning("Generated %s sessions, %s with tutor conflicts", len(drafts), flagged)
        return drafts
