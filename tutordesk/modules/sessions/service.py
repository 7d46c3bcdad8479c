"""Session lifecycle business logic.

Every change to ``ClassSession.status`` goes through ``SessionLifecycleService``.
Each mutation recomputes the owning batch's cached progress and writes an
outbox event inside the caller's transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import (
    AttendanceMarkEnum,
    BatchStatusEnum,
    RoleEnum,
    SessionStatusEnum,
)
from tutordesk.core.metrics import record_conflict, record_transition
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.batches.models import Batch
from tutordesk.modules.batches.repository import BatchesRepository
from tutordesk.modules.identity.models import User
from tutordesk.modules.sessions.calendar import (
    CalendarPolicy,
    check_slot_allowed,
    parse_pattern,
    resolve_session_dates,
)
from tutordesk.modules.sessions.conflicts import ConflictChecker, ConflictWindow
from tutordesk.modules.sessions.models import ClassSession
from tutordesk.modules.sessions.progress import AttendanceStats, BatchProgress, attendance_stats, compute_progress
from tutordesk.modules.sessions.repository import SessionsRepository
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    InvalidTransitionException,
    NotFoundException,
    SchedulingConflictException,
    UnauthorizedException,
)
from tutordesk.shared.utils import ensure_utc, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ShiftWarning:
    session_number: int
    message: str


@dataclass(slots=True)
class CascadeResult:
    session: ClassSession
    shifted: list[ClassSession] = field(default_factory=list)
    warnings: list[ShiftWarning] = field(default_factory=list)


@dataclass(slots=True)
class SupersedeResult:
    superseded: ClassSession
    replacement: ClassSession


def _append_note(existing: str | None, text: str) -> str:
    return f"{existing}\n{text}" if existing else text


class SessionLifecycleService:
    """State machine for individual sessions and batch-wide session transitions."""

    def __init__(
        self,
        sessions_repository: SessionsRepository,
        batches_repository: BatchesRepository,
        audit_repository: AuditRepository,
        *,
        policy: CalendarPolicy | None = None,
        conflict_checker: ConflictChecker | None = None,
        supersede_attempts: int | None = None,
    ) -> None:
        self.sessions_repository = sessions_repository
        self.batches_repository = batches_repository
        self.audit_repository = audit_repository
        self.policy = policy or CalendarPolicy.from_settings(settings)
        self.conflict_checker = conflict_checker or ConflictChecker(
            sessions_repository,
            ConflictWindow.from_settings(settings),
        )
        self.supersede_attempts = supersede_attempts or settings.supersede_auto_attempts

    async def _get_session(self, session_id: UUID) -> ClassSession:
        row = await self.sessions_repository.get_session_by_id(session_id)
        if row is None:
            raise NotFoundException("Session not found")
        return row

    async def _get_batch(self, batch_id: UUID) -> Batch:
        batch = await self.batches_repository.get_batch_by_id(batch_id)
        if batch is None:
            raise NotFoundException("Batch not found")
        return batch

    @staticmethod
    def _ensure_admin(actor: User, message: str) -> None:
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException(message)

    @staticmethod
    def _ensure_can_manage(row: ClassSession, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.TUTOR and row.assigned_tutor_id == actor.id:
            return
        raise UnauthorizedException("You cannot manage this session")

    @staticmethod
    def _ensure_scheduled(row: ClassSession, attempted: str) -> None:
        if row.status != SessionStatusEnum.SCHEDULED:
            logger.warning("Rejected %s of session %s in status %s", attempted, row.id, row.status.value)
            raise InvalidTransitionException(
                f"Cannot {attempted} a session in status {row.status.value}",
                current=row.status.value,
                attempted=attempted,
            )

    def _validate_new_time(self, new_datetime: datetime) -> datetime:
        new_at = ensure_utc(new_datetime)
        if new_at <= utc_now():
            raise BusinessRuleException("Cannot move a session into the past")
        check_slot_allowed(new_at, self.policy)
        return new_at

    async def _lock_tutor(self, tutor_id: UUID | None) -> None:
        if tutor_id is not None:
            await self.sessions_repository.lock_tutor_schedule(tutor_id)

    async def _emit(self, event_type: str, row: ClassSession, payload: dict | None = None) -> None:
        await self.audit_repository.create_outbox_event(
            aggregate_type="session",
            aggregate_id=str(row.id),
            event_type=event_type,
            payload={
                "session_id": str(row.id),
                "batch_id": str(row.batch_id),
                "session_number": row.session_number,
                "scheduled_at": ensure_utc(row.scheduled_at).isoformat(),
                **(payload or {}),
            },
        )

    async def refresh_batch_progress(self, batch_id: UUID) -> BatchProgress:
        """Recompute and store the cached progress summary of a batch."""
        rows = await self.sessions_repository.list_batch_sessions(batch_id)
        progress = compute_progress(rows)
        batch = await self._get_batch(batch_id)
        await self.batches_repository.update_batch(batch, progress=progress.summary())
        return progress

    async def mark_attendance(
        self,
        session_id: UUID,
        attendance: Mapping[UUID | str, AttendanceMarkEnum | str],
        actor: User,
    ) -> tuple[ClassSession, AttendanceStats]:
        """Complete a scheduled session with its attendance map."""
        row = await self._get_session(session_id)
        self._ensure_can_manage(row, actor)
        self._ensure_scheduled(row, "complete")

        marks = {str(student_id): AttendanceMarkEnum(mark).value for student_id, mark in attendance.items()}
        row = await self.sessions_repository.update_session(
            row,
            status=SessionStatusEnum.COMPLETED,
            attendance=marks,
            completed_at=utc_now(),
        )
        stats = attendance_stats(marks)
        await self.refresh_batch_progress(row.batch_id)
        await self._emit(
            "session.completed",
            row,
            {"present": stats.present, "total": stats.total, "attendance_rate": stats.rate},
        )
        record_transition("complete")
        logger.info("Completed session %s with attendance %s/%s", row.id, stats.present, stats.total)
        return row, stats

    async def cancel_session(self, session_id: UUID, reason: str | None, actor: User) -> ClassSession:
        row = await self._get_session(session_id)
        self._ensure_admin(actor, "Only admin can cancel sessions")
        self._ensure_scheduled(row, "cancel")

        note = f"Cancelled: {reason}" if reason else "Cancelled"
        row = await self.sessions_repository.update_session(
            row,
            status=SessionStatusEnum.CANCELLED,
            canceled_at=utc_now(),
            notes=_append_note(row.notes, note),
        )
        await self.refresh_batch_progress(row.batch_id)
        await self._emit("session.canceled", row, {"reason": reason})
        record_transition("cancel")
        logger.info("Cancelled session %s", row.id)
        return row

    async def reschedule_session(
        self,
        session_id: UUID,
        new_datetime: datetime,
        reason: str | None,
        actor: User,
    ) -> ClassSession:
        """Move one session in place; it stays Scheduled and keeps its number."""
        row = await self._get_session(session_id)
        self._ensure_admin(actor, "Only admin can reschedule sessions")
        self._ensure_scheduled(row, "reschedule")
        new_at = self._validate_new_time(new_datetime)

        await self._lock_tutor(row.assigned_tutor_id)
        await self.conflict_checker.ensure_free(
            row.assigned_tutor_id,
            new_at,
            operation="move",
            exclude_ids={row.id},
        )

        previous_at = ensure_utc(row.scheduled_at)
        changes: dict = {"scheduled_at": new_at}
        if reason:
            changes["notes"] = _append_note(row.notes, f"Moved: {reason}")
        row = await self.sessions_repository.update_session(row, **changes)
        await self.refresh_batch_progress(row.batch_id)
        await self._emit("session.moved", row, {"previous_scheduled_at": previous_at.isoformat(), "reason": reason})
        record_transition("move")
        logger.info("Moved session %s from %s to %s", row.id, previous_at.isoformat(), new_at.isoformat())
        return row

    async def reschedule_cascade(
        self,
        session_id: UUID,
        new_datetime: datetime,
        reason: str | None,
        actor: User,
    ) -> CascadeResult:
        """Move a session and shift every later Scheduled session of the batch by the same delta.

        Only the moved session is checked strictly; conflicts of the shifted
        sessions are reported as warnings.
        """
        row = await self._get_session(session_id)
        self._ensure_admin(actor, "Only admin can reschedule sessions")
        self._ensure_scheduled(row, "reschedule")
        new_at = self._validate_new_time(new_datetime)

        delta = new_at - ensure_utc(row.scheduled_at)
        later = [
            item
            for item in await self.sessions_repository.list_batch_sessions(
                row.batch_id,
                statuses=(SessionStatusEnum.SCHEDULED,),
                min_session_number=row.session_number + 1,
            )
            if item.id != row.id
        ]
        moving_ids = {row.id, *(item.id for item in later)}

        await self._lock_tutor(row.assigned_tutor_id)
        await self.conflict_checker.ensure_free(
            row.assigned_tutor_id,
            new_at,
            operation="cascade",
            exclude_ids=moving_ids,
        )

        result = CascadeResult(session=row)
        for item in later:
            shifted_at = ensure_utc(item.scheduled_at) + delta
            conflicts = await self.conflict_checker.find_conflicts(
                item.assigned_tutor_id,
                shifted_at,
                exclude_ids=moving_ids,
            )
            if conflicts:
                record_conflict("cascade", rejected=False)
                result.warnings.append(
                    ShiftWarning(
                        session_number=item.session_number,
                        message=f"Tutor has {len(conflicts)} other session(s) near {shifted_at.isoformat()}",
                    ),
                )

        changes: dict = {"scheduled_at": new_at}
        if reason:
            changes["notes"] = _append_note(row.notes, f"Moved with cascade: {reason}")
        result.session = await self.sessions_repository.update_session(row, **changes)
        for item in later:
            shifted = await self.sessions_repository.update_session(
                item,
                scheduled_at=ensure_utc(item.scheduled_at) + delta,
            )
            result.shifted.append(shifted)

        await self.refresh_batch_progress(row.batch_id)
        await self._emit(
            "session.cascaded",
            result.session,
            {
                "delta_seconds": int(delta.total_seconds()),
                "shifted_session_ids": [str(item.id) for item in result.shifted],
                "reason": reason,
            },
        )
        record_transition("cascade")
        logger.info(
            "Cascaded session %s by %s, shifted %s later session(s)",
            row.id,
            delta,
            len(result.shifted),
        )
        return result

    async def _next_free_slot(self, batch: Batch, original: ClassSession) -> datetime:
        rows = await self.sessions_repository.list_batch_sessions(batch.id)
        # Replacement lands strictly after every live slot, the retired one included.
        anchor = max(
            [ensure_utc(item.scheduled_at) for item in rows if item.status != SessionStatusEnum.RESCHEDULED]
            + [ensure_utc(original.scheduled_at)],
        )
        start_at = max(anchor + timedelta(minutes=1), utc_now())

        candidates = resolve_session_dates(
            start_at,
            parse_pattern(batch.schedule),
            self.supersede_attempts,
            self.policy,
        )
        for candidate in candidates:
            if not await self.conflict_checker.has_conflict(
                original.assigned_tutor_id,
                candidate.scheduled_at,
                exclude_ids={original.id},
            ):
                return candidate.scheduled_at

        record_conflict("supersede", rejected=True)
        raise SchedulingConflictException(
            f"No conflict-free pattern slot in the next {self.supersede_attempts} occurrences",
        )

    async def reschedule_supersede(
        self,
        session_id: UUID,
        reason: str | None,
        actor: User,
        new_datetime: datetime | None = None,
    ) -> SupersedeResult:
        """Retire a session as Rescheduled and append a replacement at the end of the numbering.

        Without ``new_datetime`` the replacement takes the first conflict-free
        pattern slot after the batch's last live session.
        """
        original = await self._get_session(session_id)
        self._ensure_admin(actor, "Only admin can reschedule sessions")
        self._ensure_scheduled(original, "supersede")
        batch = await self._get_batch(original.batch_id)

        await self._lock_tutor(original.assigned_tutor_id)
        if new_datetime is not None:
            target_at = self._validate_new_time(new_datetime)
            await self.conflict_checker.ensure_free(
                original.assigned_tutor_id,
                target_at,
                operation="supersede",
                exclude_ids={original.id},
            )
        else:
            target_at = await self._next_free_slot(batch, original)

        next_number = await self.sessions_repository.get_max_session_number(original.batch_id) + 1
        note = f"Superseded by session {next_number}" + (f": {reason}" if reason else "")
        original = await self.sessions_repository.update_session(
            original,
            status=SessionStatusEnum.RESCHEDULED,
            notes=_append_note(original.notes, note),
        )
        replacement = await self.sessions_repository.create_session(
            batch_id=original.batch_id,
            session_number=next_number,
            curriculum_topic=original.curriculum_topic,
            scheduled_at=target_at,
            assigned_tutor_id=original.assigned_tutor_id,
            status=SessionStatusEnum.SCHEDULED,
            attendance={},
            rescheduled_from_session_id=original.id,
        )

        await self.refresh_batch_progress(original.batch_id)
        await self._emit(
            "session.superseded",
            original,
            {
                "replacement_session_id": str(replacement.id),
                "replacement_session_number": replacement.session_number,
                "replacement_scheduled_at": ensure_utc(replacement.scheduled_at).isoformat(),
                "reason": reason,
            },
        )
        record_transition("supersede")
        logger.info(
            "Superseded session %s by session %s at %s",
            original.id,
            replacement.session_number,
            ensure_utc(replacement.scheduled_at).isoformat(),
        )
        return SupersedeResult(superseded=original, replacement=replacement)

    async def save_notes(self, session_id: UUID, notes: str, actor: User) -> ClassSession:
        row = await self._get_session(session_id)
        self._ensure_can_manage(row, actor)
        return await self.sessions_repository.update_session(row, notes=notes)

    async def assign_tutor(self, session_id: UUID, tutor_id: UUID, actor: User) -> ClassSession:
        """Reassign a scheduled session; the new tutor must be free at its time."""
        row = await self._get_session(session_id)
        self._ensure_admin(actor, "Only admin can assign tutors")
        self._ensure_scheduled(row, "assign_tutor")

        await self._lock_tutor(tutor_id)
        await self.conflict_checker.ensure_free(
            tutor_id,
            ensure_utc(row.scheduled_at),
            operation="assign",
            exclude_ids={row.id},
        )
        return await self.sessions_repository.update_session(row, assigned_tutor_id=tutor_id)

    async def attach_meeting_reference(self, session_id: UUID, reference: str | None, actor: User) -> ClassSession:
        row = await self._get_session(session_id)
        self._ensure_can_manage(row, actor)
        return await self.sessions_repository.update_session(row, meeting_reference=reference)

    async def complete_batch(self, batch: Batch, actor: User) -> list[ClassSession]:
        """Mark a batch Completed and force-complete its future Scheduled sessions without attendance."""
        now = utc_now()
        pending = await self.sessions_repository.list_batch_sessions(
            batch.id,
            statuses=(SessionStatusEnum.SCHEDULED,),
        )
        closed: list[ClassSession] = []
        for row in pending:
            if ensure_utc(row.scheduled_at) <= now:
                continue
            closed.append(
                await self.sessions_repository.update_session(
                    row,
                    status=SessionStatusEnum.COMPLETED,
                    completed_at=now,
                ),
            )

        await self.batches_repository.update_batch(batch, status=BatchStatusEnum.COMPLETED)
        await self.refresh_batch_progress(batch.id)
        await self.audit_repository.create_outbox_event(
            aggregate_type="batch",
            aggregate_id=str(batch.id),
            event_type="batch.completed",
            payload={
                "batch_id": str(batch.id),
                "completed_by": str(actor.id),
                "force_completed_session_ids": [str(row.id) for row in closed],
            },
        )
        if closed:
            record_transition("force_complete")
        logger.info("Completed batch %s, force-completed %s session(s)", batch.id, len(closed))
        return closed

    async def reactivate_batch_from(
        self,
        batch_id: UUID,
        resume_session_number: int,
        actor: User,
    ) -> tuple[Batch, list[ClassSession]]:
        """Reopen a Completed batch from ``resume_session_number`` onwards.

        Completed and Cancelled sessions at or after that number go back to
        Scheduled with their attendance cleared; superseded sessions stay retired.
        """
        self._ensure_admin(actor, "Only admin can reactivate batches")
        if resume_session_number < 1:
            raise BusinessRuleException("Resume session number must be at least 1")
        batch = await self.batches_repository.get_batch_for_update(batch_id)
        if batch is None:
            raise NotFoundException("Batch not found")
        if batch.status != BatchStatusEnum.COMPLETED:
            raise InvalidTransitionException(
                f"Only a Completed batch can be reactivated, batch is {batch.status.value}",
                current=batch.status.value,
                attempted="reactivate",
            )

        rows = await self.sessions_repository.list_batch_sessions(
            batch_id,
            statuses=(SessionStatusEnum.COMPLETED, SessionStatusEnum.CANCELLED),
            min_session_number=resume_session_number,
        )
        reopened = [
            await self.sessions_repository.update_session(
                row,
                status=SessionStatusEnum.SCHEDULED,
                attendance={},
                completed_at=None,
                canceled_at=None,
            )
            for row in rows
        ]

        batch = await self.batches_repository.update_batch(batch, status=BatchStatusEnum.ACTIVE)
        await self.refresh_batch_progress(batch_id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="batch.reactivate",
            entity_type="batch",
            entity_id=str(batch_id),
            payload={"resume_session_number": resume_session_number, "reopened": len(reopened)},
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="batch",
            aggregate_id=str(batch_id),
            event_type="batch.reactivated",
            payload={
                "batch_id": str(batch_id),
                "resume_session_number": resume_session_number,
                "reopened_session_ids": [str(row.id) for row in reopened],
            },
        )
        record_transition("reactivate")
        logger.info("Reactivated batch %s from session %s, reopened %s", batch_id, resume_session_number, len(reopened))
        return batch, reopened

    async def get_session(self, session_id: UUID, actor: User) -> ClassSession:
        row = await self._get_session(session_id)
        role = actor.role.name
        if role == RoleEnum.ADMIN:
            return row
        if role == RoleEnum.TUTOR and row.assigned_tutor_id == actor.id:
            return row
        if role == RoleEnum.STUDENT:
            enrollment = await self.batches_repository.get_active_enrollment(row.batch_id, actor.id)
            if enrollment is not None:
                return row
        raise UnauthorizedException("You cannot view this session")

    async def list_sessions(
        self,
        actor: User,
        *,
        batch_id: UUID | None,
        status: SessionStatusEnum | None,
        date_from: datetime | None,
        date_to: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ClassSession], int]:
        return await self.sessions_repository.list_sessions(
            user_id=actor.id,
            role_name=actor.role.name,
            batch_id=batch_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
            offset=offset,
        )


async def get_session_lifecycle_service(
    session: AsyncSession = Depends(get_db_session),
) -> SessionLifecycleService:
    """Dependency provider for the session lifecycle service."""
    return SessionLifecycleService(
        sessions_repository=SessionsRepository(session),
        batches_repository=BatchesRepository(session),
        audit_repository=AuditRepository(session),
    )
