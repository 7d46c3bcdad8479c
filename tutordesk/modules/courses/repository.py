"""Courses repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.enums import SkillLevelEnum
from tutordesk.modules.courses.models import Course


class CoursesRepository:
    """DB operations for courses domain."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_course(self, **fields) -> Course:
        course = Course(**fields)
        self.session.add(course)
        await self.session.flush()
        return course

    async def get_course_by_id(self, course_id: UUID) -> Course | None:
        stmt = select(Course).where(Course.id == course_id)
        return await self.session.scalar(stmt)

    async def list_courses(
        self,
        skill_level: SkillLevelEnum | None,
        active_only: bool,
        limit: int,
        offset: int,
    ) -> tuple[list[Course], int]:
        base_stmt: Select[tuple[Course]] = select(Course)
        if skill_level is not None:
            base_stmt = base_stmt.where(Course.skill_level == skill_level)
        if active_only:
            base_stmt = base_stmt.where(Course.is_active.is_(True))

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Course.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def update_course(self, course: Course, **changes) -> Course:
        for key, value in changes.items():
            setattr(course, key, value)
        await self.session.flush()
        return course
