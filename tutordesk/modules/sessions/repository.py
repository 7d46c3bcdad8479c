"""Sessions repository layer."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import EnrollmentStatusEnum, RoleEnum, SessionStatusEnum
from tutordesk.modules.batches.models import Enrollment
from tutordesk.modules.sessions.models import ClassSession


class SessionsRepository:
    """DB operations for the sessions domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_sessions(self, batch_id: UUID, drafts: Iterable) -> list[ClassSession]:
        rows = [
            ClassSession(
                batch_id=batch_id,
                session_number=draft.session_number,
                curriculum_topic=draft.curriculum_topic,
                scheduled_at=draft.scheduled_at,
                assigned_tutor_id=draft.assigned_tutor_id,
                status=draft.status,
                attendance={},
            )
            for draft in drafts
        ]
        self.session.add_all(rows)
        await self.session.flush()
        return rows

    async def create_session(self, **fields) -> ClassSession:
        row = ClassSession(**fields)
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_session_by_id(self, session_id: UUID) -> ClassSession | None:
        return await self.session.get(ClassSession, session_id)

    async def list_batch_sessions(
        self,
        batch_id: UUID,
        *,
        statuses: Collection[SessionStatusEnum] | None = None,
        min_session_number: int | None = None,
    ) -> list[ClassSession]:
        stmt = select(ClassSession).where(ClassSession.batch_id == batch_id)
        if statuses:
            stmt = stmt.where(ClassSession.status.in_(list(statuses)))
        if min_session_number is not None:
            stmt = stmt.where(ClassSession.session_number >= min_session_number)
        stmt = stmt.order_by(ClassSession.session_number.asc())
        return list((await self.session.scalars(stmt)).all())

    async def get_max_session_number(self, batch_id: UUID) -> int:
        stmt = select(func.max(ClassSession.session_number)).where(ClassSession.batch_id == batch_id)
        return int((await self.session.scalar(stmt)) or 0)

    async def find_tutor_sessions_between(
        self,
        tutor_id: UUID,
        start: datetime,
        end: datetime,
        statuses: Collection[SessionStatusEnum],
        exclude_ids: Collection[UUID] = (),
    ) -> list[ClassSession]:
        stmt = select(ClassSession).where(
            ClassSession.assigned_tutor_id == tutor_id,
            ClassSession.scheduled_at >= start,
            ClassSession.scheduled_at <= end,
            ClassSession.status.in_(list(statuses)),
        )
        if exclude_ids:
            stmt = stmt.where(ClassSession.id.not_in(list(exclude_ids)))
        stmt = stmt.order_by(ClassSession.scheduled_at.asc())
        return list((await self.session.scalars(stmt)).all())

    async def lock_tutor_schedule(self, tutor_id: UUID) -> None:
        """Serialize conflict-check-then-write sequences per tutor until commit."""
        await self.session.execute(
            select(func.pg_advisory_xact_lock(func.hashtext(f"tutor-schedule:{tutor_id}"))),
        )

    async def update_session(self, row: ClassSession, **changes) -> ClassSession:
        for key, value in changes.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def list_sessions(
        self,
        *,
        user_id: UUID,
        role_name: RoleEnum,
        batch_id: UUID | None,
        status: SessionStatusEnum | None,
        date_from: datetime | None,
        date_to: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[ClassSession], int]:
        base_stmt: Select[tuple[ClassSession]] = select(ClassSession)

        if role_name == RoleEnum.TUTOR:
            base_stmt = base_stmt.where(ClassSession.assigned_tutor_id == user_id)
        elif role_name == RoleEnum.STUDENT:
            enrolled_batches = select(Enrollment.batch_id).where(
                Enrollment.student_id == user_id,
                Enrollment.status == EnrollmentStatusEnum.ACTIVE,
            )
            base_stmt = base_stmt.where(ClassSession.batch_id.in_(enrolled_batches))

        if batch_id is not None:
            base_stmt = base_stmt.where(ClassSession.batch_id == batch_id)
        if status is not None:
            base_stmt = base_stmt.where(ClassSession.status == status)
        if date_from is not None:
            base_stmt = base_stmt.where(ClassSession.scheduled_at >= date_from)
        if date_to is not None:
            base_stmt = base_stmt.where(ClassSession.scheduled_at <= date_to)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(ClassSession.scheduled_at.asc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total
