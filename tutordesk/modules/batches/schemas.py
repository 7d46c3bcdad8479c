"""Batches schemas."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutordesk.core.enums import BatchStatusEnum, EnrollmentStatusEnum, WeekdayEnum
from tutordesk.modules.identity.views import UserView
from tutordesk.modules.sessions.schemas import AttendanceStatsRead, SessionRead

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class PatternEntry(BaseModel):
    """One weekly slot, e.g. ``{"day": "Tuesday", "time": "18:00"}``."""

    day: WeekdayEnum
    time: str

    @field_validator("day", mode="before")
    @classmethod
    def normalize_day(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().capitalize()
        return value

    @field_validator("time")
    @classmethod
    def check_time(cls, value: str) -> str:
        if not _TIME_PATTERN.match(value):
            raise ValueError("time must be HH:MM in 24-hour format")
        return value


class BatchCreate(BaseModel):
    """Create batch request."""

    course_id: UUID
    start_date: date
    schedule: list[PatternEntry] = Field(min_length=1)
    tutor_id: UUID | None = None
    max_students: int = Field(default=5, ge=1, le=20)
    total_sessions: int | None = Field(default=None, ge=1, le=50)


class BatchUpdate(BaseModel):
    """Update batch request."""

    current_tutor_id: UUID | None = None
    max_students: int | None = Field(default=None, ge=1, le=20)
    status: BatchStatusEnum | None = None


class ReactivateRequest(BaseModel):
    resume_session_number: int = Field(ge=1)


class BatchRead(BaseModel):
    """Batch response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    batch_number: int
    batch_name: str
    start_date: date
    current_tutor_id: UUID | None
    max_students: int
    schedule: list[PatternEntry]
    total_sessions: int
    status: BatchStatusEnum
    progress: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class GenerationWarningRead(BaseModel):
    session_number: int
    message: str


class BatchCreateResult(BaseModel):
    batch: BatchRead
    sessions: list[SessionRead]
    warnings: list[GenerationWarningRead]


class BatchDetail(BaseModel):
    """Batch with tutor and roster projected for the viewer's role."""

    batch: BatchRead
    tutor: UserView | None
    students: list[UserView]
    active_enrollments: int


class BatchSessionRead(SessionRead):
    attendance_stats: AttendanceStatsRead


class BatchProgressRead(BaseModel):
    total_active: int
    completed: int
    attendance_rate_overall: int
    current_session: int | None
    cached: dict[str, Any]


class EnrollmentCreate(BaseModel):
    student_id: UUID


class EnrollmentStatusUpdate(BaseModel):
    status: EnrollmentStatusEnum


class EnrollmentRead(BaseModel):
    """Enrollment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    batch_id: UUID
    student_id: UUID
    enrollment_date: datetime
    status: EnrollmentStatusEnum


class StudentBatchProgressRead(BaseModel):
    batch_id: UUID
    batch_name: str
    course_id: UUID
    enrollment_date: datetime
    total_sessions: int
    completed_sessions: int
    attended_sessions: int
    progress_percentage: int
    attendance_rate: int
