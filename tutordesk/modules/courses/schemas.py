"""Courses schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutordesk.core.enums import SkillLevelEnum


class CurriculumItem(BaseModel):
    """One curriculum entry keyed by session number."""

    session_number: int = Field(ge=1)
    topic: str = Field(min_length=1, max_length=300)


def _check_unique_numbers(items: list[CurriculumItem] | None) -> list[CurriculumItem] | None:
    if items is None:
        return None
    numbers = [item.session_number for item in items]
    if len(numbers) != len(set(numbers)):
        raise ValueError("Curriculum session numbers must be unique")
    return sorted(items, key=lambda item: item.session_number)


class CourseCreate(BaseModel):
    """Create course request."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = None
    skill_level: SkillLevelEnum
    total_sessions: int = Field(ge=1, le=50)
    session_duration_minutes: int = Field(default=60, ge=15, le=180)
    curriculum: list[CurriculumItem] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)

    @field_validator("curriculum")
    @classmethod
    def unique_curriculum(cls, value: list[CurriculumItem] | None) -> list[CurriculumItem] | None:
        return _check_unique_numbers(value)


class CourseUpdate(BaseModel):
    """Update course request."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    skill_level: SkillLevelEnum | None = None
    total_sessions: int | None = Field(default=None, ge=1, le=50)
    session_duration_minutes: int | None = Field(default=None, ge=15, le=180)
    curriculum: list[CurriculumItem] | None = None
    prerequisites: list[str] | None = None
    is_active: bool | None = None

    @field_validator("curriculum")
    @classmethod
    def unique_curriculum(cls, value: list[CurriculumItem] | None) -> list[CurriculumItem] | None:
        return _check_unique_numbers(value)


class CourseRead(BaseModel):
    """Course response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    skill_level: SkillLevelEnum
    total_sessions: int
    session_duration_minutes: int
    curriculum: list[CurriculumItem]
    prerequisites: list[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime
