"""Sessions schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tutordesk.core.enums import AttendanceMarkEnum, SessionStatusEnum


class SessionRead(BaseModel):
    """Session response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    batch_id: UUID
    session_number: int
    curriculum_topic: str
    scheduled_at: datetime
    assigned_tutor_id: UUID | None
    status: SessionStatusEnum
    attendance: dict[str, AttendanceMarkEnum]
    notes: str | None
    meeting_reference: str | None
    completed_at: datetime | None
    canceled_at: datetime | None
    rescheduled_from_session_id: UUID | None


class AttendanceStatsRead(BaseModel):
    present: int
    total: int
    rate: int


class AttendanceRequest(BaseModel):
    """Attendance map keyed by student id."""

    attendance: dict[UUID, AttendanceMarkEnum]


class AttendanceResult(BaseModel):
    session: SessionRead
    attendance_stats: AttendanceStatsRead


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class RescheduleRequest(BaseModel):
    """Move request; ``new_datetime`` must carry a UTC offset."""

    new_datetime: datetime
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("new_datetime")
    @classmethod
    def require_offset(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("new_datetime must include a timezone offset")
        return value


class SupersedeRequest(BaseModel):
    """Supersede request; without ``new_datetime`` the next free pattern slot is used."""

    new_datetime: datetime | None = None
    reason: str | None = Field(default=None, max_length=500)

    @field_validator("new_datetime")
    @classmethod
    def require_offset(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            raise ValueError("new_datetime must include a timezone offset")
        return value


class ShiftWarningRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session_number: int
    message: str


class CascadeResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    session: SessionRead
    shifted: list[SessionRead]
    warnings: list[ShiftWarningRead]


class SupersedeResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    superseded: SessionRead
    replacement: SessionRead


class NotesRequest(BaseModel):
    notes: str = Field(max_length=5000)


class AssignTutorRequest(BaseModel):
    tutor_id: UUID


class MeetingReferenceRequest(BaseModel):
    meeting_reference: str | None = Field(default=None, max_length=512)
