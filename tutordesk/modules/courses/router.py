"""Courses API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tutordesk.core.enums import SkillLevelEnum
from tutordesk.modules.courses.schemas import CourseCreate, CourseRead, CourseUpdate
from tutordesk.modules.courses.service import CoursesService, get_courses_service
from tutordesk.modules.identity.service import get_current_user
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/courses", tags=["courses"])


@router.post("", response_model=CourseRead, status_code=status.HTTP_201_CREATED)
async def create_course(
    payload: CourseCreate,
    service: CoursesService = Depends(get_courses_service),
    current_user=Depends(get_current_user),
) -> CourseRead:
    """Create course."""
    course = await service.create_course(payload, current_user)
    return CourseRead.model_validate(course)


@router.patch("/{course_id}", response_model=CourseRead)
async def update_course(
    course_id: UUID,
    payload: CourseUpdate,
    service: CoursesService = Depends(get_courses_service),
    current_user=Depends(get_current_user),
) -> CourseRead:
    """Update course."""
    course = await service.update_course(course_id, payload, current_user)
    return CourseRead.model_validate(course)


@router.get("/{course_id}", response_model=CourseRead)
async def get_course(
    course_id: UUID,
    service: CoursesService = Depends(get_courses_service),
    _=Depends(get_current_user),
) -> CourseRead:
    course = await service.get_course(course_id)
    return CourseRead.model_validate(course)


@router.get("", response_model=Page[CourseRead])
async def list_courses(
    skill_level: SkillLevelEnum | None = Query(default=None),
    active_only: bool = Query(default=True),
    pagination=Depends(get_pagination_params),
    service: CoursesService = Depends(get_courses_service),
    _=Depends(get_current_user),
) -> Page[CourseRead]:
    """List courses."""
    items, total = await service.list_courses(skill_level, active_only, pagination.limit, pagination.offset)
    serialized = [CourseRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
