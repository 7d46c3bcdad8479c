"""Batch and enrollment ORM models."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tutordesk.core.database import Base, BaseModelMixin
from tutordesk.core.enums import BatchStatusEnum, EnrollmentStatusEnum
from tutordesk.shared.utils import utc_now


class Batch(BaseModelMixin, Base):
    """A cohort running one course on a weekly pattern."""

    __tablename__ = "batches"
    __table_args__ = (UniqueConstraint("course_id", "batch_number", name="uq_batches_course_number"),)

    course_id: Mapped[UUID] = mapped_column(ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False, index=True)
    batch_number: Mapped[int] = mapped_column(Integer, nullable=False)
    batch_name: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    current_tutor_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    max_students: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    schedule: Mapped[list] = mapped_column(JSONB, default=list, nullable=False)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[BatchStatusEnum] = mapped_column(
        SAEnum(BatchStatusEnum, name="batch_status_enum", native_enum=False),
        default=BatchStatusEnum.ACTIVE,
        nullable=False,
        index=True,
    )
    progress: Mapped[dict] = mapped_column(JSONB, default=dict, nullable=False)


class Enrollment(BaseModelMixin, Base):
    """Student membership in a batch."""

    __tablename__ = "enrollments"

    batch_id: Mapped[UUID] = mapped_column(ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    enrollment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    status: Mapped[EnrollmentStatusEnum] = mapped_column(
        SAEnum(EnrollmentStatusEnum, name="enrollment_status_enum", native_enum=False),
        default=EnrollmentStatusEnum.ACTIVE,
        nullable=False,
        index=True,
    )
