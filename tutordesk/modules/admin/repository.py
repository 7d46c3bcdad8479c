"""Admin repository layer."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import (
    BatchStatusEnum,
    EnrollmentStatusEnum,
    OutboxStatusEnum,
    RoleEnum,
    SessionStatusEnum,
)
from tutordesk.modules.audit.models import OutboxEvent
from tutordesk.modules.batches.models import Batch, Enrollment
from tutordesk.modules.courses.models import Course
from tutordesk.modules.identity.models import Role, User
from tutordesk.modules.sessions.models import ClassSession


class AdminRepository:
    """Read-only aggregate queries for the admin dashboard."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_active_users_by_role(self) -> dict[RoleEnum, int]:
        stmt = (
            select(Role.name, func.count(User.id))
            .join(User, User.role_id == Role.id)
            .where(User.is_active.is_(True))
            .group_by(Role.name)
        )
        rows = (await self.session.execute(stmt)).all()
        return {role_name: int(count) for role_name, count in rows}

    async def count_active_courses(self) -> int:
        stmt = select(func.count()).select_from(Course).where(Course.is_active.is_(True))
        return int((await self.session.scalar(stmt)) or 0)

    async def count_batches_by_status(self) -> dict[BatchStatusEnum, int]:
        stmt = select(Batch.status, func.count()).group_by(Batch.status)
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}

    async def count_sessions_by_status(self) -> dict[SessionStatusEnum, int]:
        stmt = select(ClassSession.status, func.count()).group_by(ClassSession.status)
        rows = (await self.session.execute(stmt)).all()
        return {status: int(count) for status, count in rows}

    async def count_sessions_between(self, start: datetime, end: datetime) -> int:
        stmt = select(func.count()).where(
            ClassSession.scheduled_at >= start,
            ClassSession.scheduled_at < end,
            ClassSession.status != SessionStatusEnum.RESCHEDULED,
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def count_active_enrollments(self) -> int:
        stmt = select(func.count()).where(Enrollment.status == EnrollmentStatusEnum.ACTIVE)
        return int((await self.session.scalar(stmt)) or 0)

    async def count_pending_outbox(self) -> int:
        stmt = select(func.count()).where(OutboxEvent.status == OutboxStatusEnum.PENDING)
        return int((await self.session.scalar(stmt)) or 0)

    async def list_unassigned_sessions(self, start: datetime, end: datetime) -> list[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(
                ClassSession.assigned_tutor_id.is_(None),
                ClassSession.status == SessionStatusEnum.SCHEDULED,
                ClassSession.scheduled_at >= start,
                ClassSession.scheduled_at <= end,
            )
            .order_by(ClassSession.scheduled_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_completed_sessions_since(self, since: datetime) -> list[ClassSession]:
        stmt = (
            select(ClassSession)
            .where(
                ClassSession.status == SessionStatusEnum.COMPLETED,
                ClassSession.scheduled_at >= since,
            )
            .order_by(ClassSession.scheduled_at.desc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def get_batch_names(self, batch_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = list(set(batch_ids))
        if not ids:
            return {}
        stmt = select(Batch.id, Batch.batch_name).where(Batch.id.in_(ids))
        rows = (await self.session.execute(stmt)).all()
        return {batch_id: name for batch_id, name in rows}
