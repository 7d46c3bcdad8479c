"""Batches business logic layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import BatchStatusEnum, EnrollmentStatusEnum, RoleEnum
from tutordesk.core.metrics import SESSIONS_GENERATED_TOTAL
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.batches.models import Batch, Enrollment
from tutordesk.modules.batches.repository import BatchesRepository
from tutordesk.modules.batches.schemas import BatchCreate, BatchUpdate
from tutordesk.modules.courses.repository import CoursesRepository
from tutordesk.modules.identity.models import User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.identity.views import UserView, project_user
from tutordesk.modules.sessions.calendar import CalendarPolicy, parse_pattern
from tutordesk.modules.sessions.conflicts import ConflictChecker, ConflictWindow
from tutordesk.modules.sessions.generator import SessionDraft, SessionGenerator, resolve_target_count
from tutordesk.modules.sessions.models import ClassSession
from tutordesk.modules.sessions.progress import (
    AttendanceStats,
    BatchProgress,
    StudentProgress,
    attendance_stats,
    compute_progress,
    compute_student_progress,
)
from tutordesk.modules.sessions.repository import SessionsRepository
from tutordesk.modules.sessions.service import SessionLifecycleService
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
)
from tutordesk.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

# Completed is left only through reactivation.
ALLOWED_BATCH_TRANSITIONS: dict[BatchStatusEnum, frozenset[BatchStatusEnum]] = {
    BatchStatusEnum.ACTIVE: frozenset(
        {BatchStatusEnum.PAUSED, BatchStatusEnum.COMPLETED, BatchStatusEnum.CANCELLED},
    ),
    BatchStatusEnum.PAUSED: frozenset(
        {BatchStatusEnum.ACTIVE, BatchStatusEnum.COMPLETED, BatchStatusEnum.CANCELLED},
    ),
    BatchStatusEnum.COMPLETED: frozenset(),
    BatchStatusEnum.CANCELLED: frozenset(),
}

ALLOWED_ENROLLMENT_TRANSITIONS: dict[EnrollmentStatusEnum, frozenset[EnrollmentStatusEnum]] = {
    EnrollmentStatusEnum.ACTIVE: frozenset(
        {EnrollmentStatusEnum.COMPLETED, EnrollmentStatusEnum.DROPPED, EnrollmentStatusEnum.TRANSFERRED},
    ),
    EnrollmentStatusEnum.COMPLETED: frozenset(),
    EnrollmentStatusEnum.DROPPED: frozenset(),
    EnrollmentStatusEnum.TRANSFERRED: frozenset(),
}


@dataclass(slots=True)
class BatchCreation:
    batch: Batch
    sessions: list[ClassSession]
    drafts: list[SessionDraft]


@dataclass(slots=True)
class BatchRoster:
    batch: Batch
    tutor: UserView | None
    students: list[UserView]
    active_enrollments: int


@dataclass(slots=True)
class StudentBatchProgress:
    batch: Batch
    enrollment: Enrollment
    progress: StudentProgress


class BatchesService:
    """Batch creation, status management and enrollments."""

    def __init__(
        self,
        batches_repository: BatchesRepository,
        sessions_repository: SessionsRepository,
        courses_repository: CoursesRepository,
        identity_repository: IdentityRepository,
        audit_repository: AuditRepository,
        lifecycle: SessionLifecycleService,
        *,
        policy: CalendarPolicy | None = None,
        generator: SessionGenerator | None = None,
    ) -> None:
        self.batches_repository = batches_repository
        self.sessions_repository = sessions_repository
        self.courses_repository = courses_repository
        self.identity_repository = identity_repository
        self.audit_repository = audit_repository
        self.lifecycle = lifecycle
        self.policy = policy or CalendarPolicy.from_settings(settings)
        self.generator = generator or SessionGenerator(
            ConflictChecker(sessions_repository, ConflictWindow.from_settings(settings)),
            self.policy,
        )

    @staticmethod
    def _ensure_admin(actor: User, message: str) -> None:
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException(message)

    def _start_instant(self, start_date) -> datetime:
        local_midnight = datetime.combine(start_date, time(0, 0), tzinfo=self.policy.timezone)
        return max(local_midnight, utc_now())

    async def _get_batch(self, batch_id: UUID) -> Batch:
        batch = await self.batches_repository.get_batch_by_id(batch_id)
        if batch is None:
            raise NotFoundException("Batch not found")
        return batch

    async def _ensure_can_view(self, batch: Batch, actor: User) -> None:
        role = actor.role.name
        if role == RoleEnum.ADMIN:
            return
        if role == RoleEnum.TUTOR and batch.current_tutor_id == actor.id:
            return
        if role == RoleEnum.STUDENT:
            if await self.batches_repository.get_active_enrollment(batch.id, actor.id) is not None:
                return
        raise UnauthorizedException("You cannot view this batch")

    async def create_batch(self, payload: BatchCreate, actor: User) -> BatchCreation:
        """Create a batch and its full initial session set in one transaction."""
        self._ensure_admin(actor, "Only admin can create batches")
        course = await self.courses_repository.get_course_by_id(payload.course_id)
        if course is None:
            raise NotFoundException("Course not found")
        if not course.is_active:
            raise BusinessRuleException("Course is not active")

        pattern = parse_pattern(entry.model_dump(mode="json") for entry in payload.schedule)
        target_count = resolve_target_count(
            course,
            payload.total_sessions,
            settings.default_course_session_count,
        )
        drafts = await self.generator.generate(
            start_at=self._start_instant(payload.start_date),
            pattern=pattern,
            course=course,
            tutor_id=payload.tutor_id,
            target_count=target_count,
        )

        batch_number = await self.batches_repository.get_last_batch_number(course.id) + 1
        first = drafts[0]
        batch = await self.batches_repository.create_batch(
            course_id=course.id,
            batch_number=batch_number,
            batch_name=f"{course.name} - Batch #{batch_number}",
            start_date=payload.start_date,
            current_tutor_id=payload.tutor_id,
            max_students=payload.max_students,
            schedule=[slot.as_record() for slot in pattern],
            total_sessions=target_count,
            status=BatchStatusEnum.ACTIVE,
            progress={"current_session": first.session_number, "completed_sessions": 0},
        )
        sessions = await self.sessions_repository.create_sessions(batch.id, drafts)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="batch.create",
            entity_type="batch",
            entity_id=str(batch.id),
            payload={"course_id": str(course.id), "batch_number": batch_number, "sessions": len(sessions)},
        )
        await self.audit_repository.create_outbox_event(
            aggregate_type="batch",
            aggregate_id=str(batch.id),
            event_type="batch.sessions.generated",
            payload={
                "batch_id": str(batch.id),
                "tutor_id": str(payload.tutor_id) if payload.tutor_id else None,
                "session_ids": [str(row.id) for row in sessions],
            },
        )
        SESSIONS_GENERATED_TOTAL.inc(len(sessions))
        logger.info("Created batch %s with %s sessions", batch.batch_name, len(sessions))
        return BatchCreation(batch=batch, sessions=sessions, drafts=drafts)

    async def update_batch(self, batch_id: UUID, payload: BatchUpdate, actor: User) -> Batch:
        """Update tutor, capacity or status; completion closes out future sessions."""
        self._ensure_admin(actor, "Only admin can update batches")
        batch = await self.batches_repository.get_batch_for_update(batch_id)
        if batch is None:
            raise NotFoundException("Batch not found")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        new_status = changes.pop("status", None)
        if new_status is not None and new_status != batch.status:
            if new_status not in ALLOWED_BATCH_TRANSITIONS[batch.status]:
                raise InvalidTransitionException(
                    f"Batch cannot move from {batch.status.value} to {new_status.value}",
                    current=batch.status.value,
                    attempted=new_status.value,
                )

        if "max_students" in changes:
            active = await self.batches_repository.count_active_enrollments(batch.id)
            if changes["max_students"] < active:
                raise BusinessRuleException(f"Batch already has {active} active students")

        previous_status = batch.status
        if changes:
            batch = await self.batches_repository.update_batch(batch, **changes)
        if new_status is not None and new_status != previous_status:
            if new_status == BatchStatusEnum.COMPLETED:
                await self.lifecycle.complete_batch(batch, actor)
            else:
                batch = await self.batches_repository.update_batch(batch, status=new_status)

        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="batch.update",
            entity_type="batch",
            entity_id=str(batch.id),
            payload={
                "changes": {key: str(value) for key, value in changes.items()},
                "status_from": previous_status.value,
                "status_to": batch.status.value,
            },
        )
        return batch

    async def reactivate_batch(self, batch_id: UUID, resume_session_number: int, actor: User) -> Batch:
        batch, _ = await self.lifecycle.reactivate_batch_from(batch_id, resume_session_number, actor)
        return batch

    async def get_batch(self, batch_id: UUID, actor: User) -> BatchRoster:
        """Batch with its tutor and active roster, projected for the viewer's role."""
        batch = await self._get_batch(batch_id)
        await self._ensure_can_view(batch, actor)

        enrollments = [
            item
            for item in await self.batches_repository.list_batch_enrollments(batch.id)
            if item.status == EnrollmentStatusEnum.ACTIVE
        ]
        user_ids = [item.student_id for item in enrollments]
        if batch.current_tutor_id is not None:
            user_ids.append(batch.current_tutor_id)
        users = await self.identity_repository.get_users_by_ids(user_ids)

        viewer_role = actor.role.name
        tutor = users.get(batch.current_tutor_id) if batch.current_tutor_id else None
        return BatchRoster(
            batch=batch,
            tutor=project_user(tutor, viewer_role) if tutor else None,
            students=[
                project_user(users[item.student_id], viewer_role)
                for item in enrollments
                if item.student_id in users
            ],
            active_enrollments=len(enrollments),
        )

    async def list_batches(
        self,
        actor: User,
        *,
        status: BatchStatusEnum | None,
        course_id: UUID | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Batch], int]:
        role = actor.role.name
        return await self.batches_repository.list_batches(
            status=status,
            course_id=course_id,
            tutor_id=actor.id if role == RoleEnum.TUTOR else None,
            student_id=actor.id if role == RoleEnum.STUDENT else None,
            limit=limit,
            offset=offset,
        )

    async def list_batch_sessions(
        self,
        batch_id: UUID,
        actor: User,
    ) -> list[tuple[ClassSession, AttendanceStats]]:
        batch = await self._get_batch(batch_id)
        await self._ensure_can_view(batch, actor)
        rows = await self.sessions_repository.list_batch_sessions(batch.id)
        return [(row, attendance_stats(row.attendance)) for row in rows]

    async def get_progress(self, batch_id: UUID, actor: User) -> tuple[BatchProgress, dict]:
        batch = await self._get_batch(batch_id)
        await self._ensure_can_view(batch, actor)
        rows = await self.sessions_repository.list_batch_sessions(batch.id)
        return compute_progress(rows), dict(batch.progress or {})

    async def enroll_student(self, batch_id: UUID, student_id: UUID, actor: User) -> Enrollment:
        self._ensure_admin(actor, "Only admin can enroll students")
        batch = await self.batches_repository.get_batch_for_update(batch_id)
        if batch is None:
            raise NotFoundException("Batch not found")
        if batch.status not in (BatchStatusEnum.ACTIVE, BatchStatusEnum.PAUSED):
            raise BusinessRuleException(f"Cannot enroll into a {batch.status.value} batch")

        student = await self.identity_repository.get_user_by_id(student_id)
        if student is None:
            raise NotFoundException("Student not found")
        if student.role.name != RoleEnum.STUDENT:
            raise BusinessRuleException("Only students can be enrolled")

        if await self.batches_repository.get_active_enrollment(batch.id, student_id) is not None:
            raise ConflictException("Student is already enrolled in this batch")
        if await self.batches_repository.count_active_enrollments(batch.id) >= batch.max_students:
            raise BusinessRuleException("Batch is full")

        enrollment = await self.batches_repository.create_enrollment(batch.id, student_id)
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action="enrollment.create",
            entity_type="batch",
            entity_id=str(batch.id),
            payload={"student_id": str(student_id), "enrollment_id": str(enrollment.id)},
        )
        return enrollment

    async def update_enrollment_status(
        self,
        enrollment_id: UUID,
        new_status: EnrollmentStatusEnum,
        actor: User,
    ) -> Enrollment:
        self._ensure_admin(actor, "Only admin can update enrollments")
        enrollment = await self.batches_repository.get_enrollment_by_id(enrollment_id)
        if enrollment is None:
            raise NotFoundException("Enrollment not found")
        if new_status not in ALLOWED_ENROLLMENT_TRANSITIONS[enrollment.status]:
            raise InvalidTransitionException(
                f"Enrollment cannot move from {enrollment.status.value} to {new_status.value}",
                current=enrollment.status.value,
                attempted=new_status.value,
            )
        return await self.batches_repository.update_enrollment(enrollment, status=new_status)

    async def list_enrollments(self, batch_id: UUID, actor: User) -> list[Enrollment]:
        self._ensure_admin(actor, "Only admin can list enrollments")
        batch = await self._get_batch(batch_id)
        return await self.batches_repository.list_batch_enrollments(batch.id)

    async def get_student_progress(self, actor: User) -> list[StudentBatchProgress]:
        """Per active enrollment progress of the current student."""
        if actor.role.name != RoleEnum.STUDENT:
            raise UnauthorizedException("Only students have personal progress")
        result: list[StudentBatchProgress] = []
        for enrollment in await self.batches_repository.list_student_enrollments(actor.id):
            if enrollment.status != EnrollmentStatusEnum.ACTIVE:
                continue
            batch = await self._get_batch(enrollment.batch_id)
            rows = await self.sessions_repository.list_batch_sessions(batch.id)
            result.append(
                StudentBatchProgress(
                    batch=batch,
                    enrollment=enrollment,
                    progress=compute_student_progress(rows, actor.id),
                ),
            )
        return result


async def get_batches_service(session: AsyncSession = Depends(get_db_session)) -> BatchesService:
    """Dependency provider for batches service."""
    sessions_repository = SessionsRepository(session)
    batches_repository = BatchesRepository(session)
    audit_repository = AuditRepository(session)
    return BatchesService(
        batches_repository=batches_repository,
        sessions_repository=sessions_repository,
        courses_repository=CoursesRepository(session),
        identity_repository=IdentityRepository(session),
        audit_repository=audit_repository,
        lifecycle=SessionLifecycleService(sessions_repository, batches_repository, audit_repository),
    )
