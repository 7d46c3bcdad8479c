"""Courses business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.database import get_db_session
from tutordesk.core.enums import RoleEnum, SkillLevelEnum
from tutordesk.modules.courses.models import Course
from tutordesk.modules.courses.repository import CoursesRepository
from tutordesk.modules.courses.schemas import CourseCreate, CourseUpdate
from tutordesk.modules.identity.models import User
from tutordesk.shared.exceptions import NotFoundException, UnauthorizedException


class CoursesService:
    """Courses domain service."""

    def __init__(self, repository: CoursesRepository) -> None:
        self.repository = repository

    async def create_course(self, payload: CourseCreate, actor: User) -> Course:
        """Create course (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can create courses")
        return await self.repository.create_course(**payload.model_dump(mode="json"))

    async def update_course(self, course_id: UUID, payload: CourseUpdate, actor: User) -> Course:
        """Edit course; existing batches keep their generated sessions."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can update courses")
        course = await self.get_course(course_id)
        changes = payload.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        return await self.repository.update_course(course, **changes)

    async def get_course(self, course_id: UUID) -> Course:
        course = await self.repository.get_course_by_id(course_id)
        if course is None:
            raise NotFoundException("Course not found")
        return course

    async def list_courses(
        self,
        skill_level: SkillLevelEnum | None,
        active_only: bool,
        limit: int,
        offset: int,
    ) -> tuple[list[Course], int]:
        return await self.repository.list_courses(skill_level, active_only, limit, offset)


async def get_courses_service(session: AsyncSession = Depends(get_db_session)) -> CoursesService:
    """Dependency provider for courses service."""
    return CoursesService(CoursesRepository(session))
