"""Batches repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import BatchStatusEnum, EnrollmentStatusEnum
from tutordesk.modules.batches.models import Batch, Enrollment


class BatchesRepository:
    """DB operations for batches and enrollments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_last_batch_number(self, course_id: UUID) -> int:
        stmt = select(func.max(Batch.batch_number)).where(Batch.course_id == course_id)
        return int((await self.session.scalar(stmt)) or 0)

    async def create_batch(self, **fields) -> Batch:
        batch = Batch(**fields)
        self.session.add(batch)
        await self.session.flush()
        return batch

    async def get_batch_by_id(self, batch_id: UUID) -> Batch | None:
        return await self.session.get(Batch, batch_id)

    async def get_batch_for_update(self, batch_id: UUID) -> Batch | None:
        stmt = select(Batch).where(Batch.id == batch_id).with_for_update()
        return await self.session.scalar(stmt)

    async def list_batches(
        self,
        *,
        status: BatchStatusEnum | None,
        course_id: UUID | None,
        tutor_id: UUID | None,
        student_id: UUID | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Batch], int]:
        base_stmt: Select[tuple[Batch]] = select(Batch)
        if status is not None:
            base_stmt = base_stmt.where(Batch.status == status)
        if course_id is not None:
            base_stmt = base_stmt.where(Batch.course_id == course_id)
        if tutor_id is not None:
            base_stmt = base_stmt.where(Batch.current_tutor_id == tutor_id)
        if student_id is not None:
            enrolled = select(Enrollment.batch_id).where(Enrollment.student_id == student_id)
            base_stmt = base_stmt.where(Batch.id.in_(enrolled))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Batch.created_at.desc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def update_batch(self, batch: Batch, **changes) -> Batch:
        for key, value in changes.items():
            setattr(batch, key, value)
        await self.session.flush()
        return batch

    async def create_enrollment(self, batch_id: UUID, student_id: UUID) -> Enrollment:
        enrollment = Enrollment(batch_id=batch_id, student_id=student_id, status=EnrollmentStatusEnum.ACTIVE)
        self.session.add(enrollment)
        await self.session.flush()
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        return await self.session.get(Enrollment, enrollment_id)

    async def get_active_enrollment(self, batch_id: UUID, student_id: UUID) -> Enrollment | None:
        stmt = select(Enrollment).where(
            Enrollment.batch_id == batch_id,
            Enrollment.student_id == student_id,
            Enrollment.status == EnrollmentStatusEnum.ACTIVE,
        )
        return await self.session.scalar(stmt)

    async def count_active_enrollments(self, batch_id: UUID) -> int:
        stmt = select(func.count()).where(
            Enrollment.batch_id == batch_id,
            Enrollment.status == EnrollmentStatusEnum.ACTIVE,
        )
        return int((await self.session.scalar(stmt)) or 0)

    async def list_batch_enrollments(self, batch_id: UUID) -> list[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(Enrollment.batch_id == batch_id)
            .order_by(Enrollment.enrollment_date.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_student_enrollments(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(Enrollment)
            .where(Enrollment.student_id == student_id)
            .order_by(Enrollment.enrollment_date.desc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def update_enrollment(self, enrollment: Enrollment, **changes) -> Enrollment:
        for key, value in changes.items():
            setattr(enrollment, key, value)
        await self.session.flush()
        return enrollment
