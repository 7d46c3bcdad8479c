"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    STUDENT = "student"
    TUTOR = "tutor"
    ADMIN = "admin"


class SkillLevelEnum(StrEnum):
    """Course difficulty level."""

    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class WeekdayEnum(StrEnum):
    """Weekday names used in batch recurrence patterns, in Sunday=0 order."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"


class BatchStatusEnum(StrEnum):
    """Batch lifecycle status."""

    ACTIVE = "Active"
    PAUSED = "Paused"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class SessionStatusEnum(StrEnum):
    """Class session status."""

    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"


class AttendanceMarkEnum(StrEnum):
    """Per-student attendance mark."""

    PRESENT = "present"
    ABSENT = "absent"


class EnrollmentStatusEnum(StrEnum):
    """Enrollment lifecycle status."""

    ACTIVE = "Active"
    COMPLETED = "Completed"
    DROPPED = "Dropped"
    TRANSFERRED = "Transferred"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
