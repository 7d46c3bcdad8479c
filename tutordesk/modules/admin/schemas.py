"""Admin schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AdminOverviewRead(BaseModel):
    """Dashboard counters."""

    generated_at: datetime

    students_active: int
    tutors_active: int
    courses_active: int
    enrollments_active: int
    sessions_today: int
    outbox_pending: int

    batches_by_status: dict[str, int]
    sessions_by_status: dict[str, int]


class AlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: str
    severity: str
    message: str
    session_id: UUID
    batch_id: UUID
    scheduled_at: datetime
