"""Courses ORM models."""

from __future__ import annotations

from sqlalchemy import Boolean, Enum as SAEnum, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin
from tutordesk.core.enums import SkillLevelEnum


class Course(BaseModelMixin, Base):
    """Course template that batches are scheduled from."""

    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    skill_level: Mapped[SkillLevelEnum] = mapped_column(
        SAEnum(SkillLevelEnum, name="skill_level_enum", native_enum=False),
        nullable=False,
    )
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    session_duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    # [{"session_number": 1, "topic": "..."}, ...]
    curriculum: Mapped[list[dict]] = mapped_column(JSONB, default=list, nullable=False)
    prerequisites: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
