"""In-memory repositories and records shared by service tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from types import SimpleNamespace
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from tutordesk.core.enums import (
    BatchStatusEnum,
    EnrollmentStatusEnum,
    RoleEnum,
    SessionStatusEnum,
)
from tutordesk.modules.sessions.calendar import CalendarPolicy

IST = ZoneInfo("Asia/Kolkata")

POLICY = CalendarPolicy(
    timezone=IST,
    holidays=frozenset({"01-26", "08-15", "10-02"}),
    business_hours=(9, 21),
    horizon_days=365,
)


def make_actor(role: RoleEnum, user_id: UUID | None = None) -> SimpleNamespace:
    return SimpleNamespace(id=user_id or uuid4(), role=SimpleNamespace(name=role))


def make_user(
    role: RoleEnum,
    *,
    first_name: str = "Priya",
    last_name: str = "Sharma",
    email: str | None = None,
) -> SimpleNamespace:
    user_id = uuid4()
    return SimpleNamespace(
        id=user_id,
        role=SimpleNamespace(name=role),
        first_name=first_name,
        last_name=last_name,
        email=email or f"{user_id.hex[:8]}@example.com",
        phone="+91-9000000000",
        timezone="Asia/Kolkata",
        profile_data={},
        is_active=True,
        created_at=datetime(2026, 1, 1, tzinfo=IST),
    )


@dataclass
class FakeCourse:
    id: UUID
    name: str
    total_sessions: int
    curriculum: list[dict] = field(default_factory=list)
    is_active: bool = True


@dataclass
class FakeBatch:
    id: UUID
    course_id: UUID
    batch_number: int
    batch_name: str
    start_date: date
    current_tutor_id: UUID | None
    max_students: int
    schedule: list[dict]
    total_sessions: int
    status: BatchStatusEnum = BatchStatusEnum.ACTIVE
    progress: dict = field(default_factory=dict)


@dataclass
class FakeEnrollment:
    id: UUID
    batch_id: UUID
    student_id: UUID
    enrollment_date: datetime
    status: EnrollmentStatusEnum = EnrollmentStatusEnum.ACTIVE


@dataclass
class FakeSession:
    id: UUID
    batch_id: UUID
    session_number: int
    curriculum_topic: str
    scheduled_at: datetime
    assigned_tutor_id: UUID | None
    status: SessionStatusEnum = SessionStatusEnum.SCHEDULED
    attendance: dict = field(default_factory=dict)
    notes: str | None = None
    meeting_reference: str | None = None
    completed_at: datetime | None = None
    canceled_at: datetime | None = None
    rescheduled_from_session_id: UUID | None = None


class FakeSessionsRepository:
    def __init__(self, sessions: list[FakeSession] | None = None) -> None:
        self.sessions: list[FakeSession] = list(sessions or [])
        self.locked_tutors: list[UUID] = []
        self.update_calls = 0

    async def create_sessions(self, batch_id: UUID, drafts) -> list[FakeSession]:
        rows = [
            FakeSession(
                id=uuid4(),
                batch_id=batch_id,
                session_number=draft.session_number,
                curriculum_topic=draft.curriculum_topic,
                scheduled_at=draft.scheduled_at,
                assigned_tutor_id=draft.assigned_tutor_id,
                status=draft.status,
            )
            for draft in drafts
        ]
        self.sessions.extend(rows)
        return rows

    async def create_session(self, **fields) -> FakeSession:
        row = FakeSession(id=uuid4(), **fields)
        self.sessions.append(row)
        return row

    async def get_session_by_id(self, session_id: UUID) -> FakeSession | None:
        return next((row for row in self.sessions if row.id == session_id), None)

    async def list_batch_sessions(
        self,
        batch_id: UUID,
        *,
        statuses=None,
        min_session_number: int | None = None,
    ) -> list[FakeSession]:
        rows = [row for row in self.sessions if row.batch_id == batch_id]
        if statuses:
            rows = [row for row in rows if row.status in statuses]
        if min_session_number is not None:
            rows = [row for row in rows if row.session_number >= min_session_number]
        return sorted(rows, key=lambda row: row.session_number)

    async def get_max_session_number(self, batch_id: UUID) -> int:
        return max((row.session_number for row in self.sessions if row.batch_id == batch_id), default=0)

    async def find_tutor_sessions_between(
        self,
        tutor_id: UUID,
        start: datetime,
        end: datetime,
        statuses,
        exclude_ids=(),
    ) -> list[FakeSession]:
        return [
            row
            for row in self.sessions
            if row.assigned_tutor_id == tutor_id
            and start <= row.scheduled_at <= end
            and row.status in statuses
            and row.id not in exclude_ids
        ]

    async def lock_tutor_schedule(self, tutor_id: UUID) -> None:
        self.locked_tutors.append(tutor_id)

    async def update_session(self, row: FakeSession, **changes) -> FakeSession:
        for key, value in changes.items():
            setattr(row, key, value)
        self.update_calls += 1
        return row

    def by_number(self, batch_id: UUID, number: int) -> FakeSession:
        return next(row for row in self.sessions if row.batch_id == batch_id and row.session_number == number)


class FakeBatchesRepository:
    def __init__(
        self,
        batches: list[FakeBatch] | None = None,
        enrollments: list[FakeEnrollment] | None = None,
    ) -> None:
        self.batches: dict[UUID, FakeBatch] = {batch.id: batch for batch in batches or []}
        self.enrollments: list[FakeEnrollment] = list(enrollments or [])

    async def get_last_batch_number(self, course_id: UUID) -> int:
        return max(
            (batch.batch_number for batch in self.batches.values() if batch.course_id == course_id),
            default=0,
        )

    async def create_batch(self, **fields) -> FakeBatch:
        batch = FakeBatch(id=uuid4(), **fields)
        self.batches[batch.id] = batch
        return batch

    async def get_batch_by_id(self, batch_id: UUID) -> FakeBatch | None:
        return self.batches.get(batch_id)

    async def get_batch_for_update(self, batch_id: UUID) -> FakeBatch | None:
        return self.batches.get(batch_id)

    async def update_batch(self, batch: FakeBatch, **changes) -> FakeBatch:
        for key, value in changes.items():
            setattr(batch, key, value)
        return batch

    async def create_enrollment(self, batch_id: UUID, student_id: UUID) -> FakeEnrollment:
        enrollment = FakeEnrollment(
            id=uuid4(),
            batch_id=batch_id,
            student_id=student_id,
            enrollment_date=datetime(2026, 11, 1, tzinfo=IST),
        )
        self.enrollments.append(enrollment)
        return enrollment

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> FakeEnrollment | None:
        return next((item for item in self.enrollments if item.id == enrollment_id), None)

    async def get_active_enrollment(self, batch_id: UUID, student_id: UUID) -> FakeEnrollment | None:
        return next(
            (
                item
                for item in self.enrollments
                if item.batch_id == batch_id
                and item.student_id == student_id
                and item.status == EnrollmentStatusEnum.ACTIVE
            ),
            None,
        )

    async def count_active_enrollments(self, batch_id: UUID) -> int:
        return sum(
            1
            for item in self.enrollments
            if item.batch_id == batch_id and item.status == EnrollmentStatusEnum.ACTIVE
        )

    async def list_batch_enrollments(self, batch_id: UUID) -> list[FakeEnrollment]:
        return [item for item in self.enrollments if item.batch_id == batch_id]

    async def list_student_enrollments(self, student_id: UUID) -> list[FakeEnrollment]:
        return [item for item in self.enrollments if item.student_id == student_id]

    async def update_enrollment(self, enrollment: FakeEnrollment, **changes) -> FakeEnrollment:
        for key, value in changes.items():
            setattr(enrollment, key, value)
        return enrollment


class FakeCoursesRepository:
    def __init__(self, courses: list[FakeCourse] | None = None) -> None:
        self.courses = {course.id: course for course in courses or []}

    async def get_course_by_id(self, course_id: UUID) -> FakeCourse | None:
        return self.courses.get(course_id)


class FakeIdentityRepository:
    def __init__(self, users: list[SimpleNamespace] | None = None) -> None:
        self.users = {user.id: user for user in users or []}

    async def get_user_by_id(self, user_id: UUID):
        return self.users.get(user_id)

    async def get_users_by_ids(self, user_ids) -> dict:
        return {user_id: self.users[user_id] for user_id in user_ids if user_id in self.users}


class FakeAuditRepository:
    def __init__(self) -> None:
        self.events: list[dict] = []
        self.logs: list[dict] = []

    async def create_outbox_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
    ) -> None:
        self.events.append(
            {
                "aggregate_type": aggregate_type,
                "aggregate_id": aggregate_id,
                "event_type": event_type,
                "payload": payload,
            },
        )

    async def create_audit_log(
        self,
        actor_id: UUID | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict,
    ) -> None:
        self.logs.append(
            {
                "actor_id": actor_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "payload": payload,
            },
        )

    def event_types(self) -> list[str]:
        return [event["event_type"] for event in self.events]
