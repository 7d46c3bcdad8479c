from __future__ import annotations

from datetime import date, datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

import tutordesk.modules.batches.service as batches_module
import tutordesk.modules.sessions.service as lifecycle_module
from tests.fakes import (
    IST,
    POLICY,
    FakeAuditRepository,
    FakeBatch,
    FakeBatchesRepository,
    FakeCourse,
    FakeCoursesRepository,
    FakeIdentityRepository,
    FakeSessionsRepository,
    make_actor,
    make_user,
)
from tutordesk.core.enums import BatchStatusEnum, EnrollmentStatusEnum, RoleEnum, SessionStatusEnum
from tutordesk.modules.batches.schemas import BatchCreate, BatchUpdate, PatternEntry
from tutordesk.modules.batches.service import BatchesService
from tutordesk.modules.identity.views import AdminUserView, TutorUserView
from tutordesk.modules.sessions.service import SessionLifecycleService
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
)

NOW = datetime(2026, 11, 1, 0, 0, tzinfo=timezone.utc)
ADMIN = make_actor(RoleEnum.ADMIN)
CURRICULUM = [{"session_number": n, "topic": f"Topic {n}"} for n in range(1, 9)]


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch):
    def _set(moment: datetime) -> None:
        monkeypatch.setattr(batches_module, "utc_now", lambda: moment)
        monkeypatch.setattr(lifecycle_module, "utc_now", lambda: moment)

    _set(NOW)
    return _set


def _build(*, courses: list[FakeCourse] | None = None, users: list | None = None) -> SimpleNamespace:
    course = FakeCourse(id=uuid4(), name="Foundations of Python", total_sessions=8, curriculum=CURRICULUM)
    sessions_repository = FakeSessionsRepository()
    batches_repository = FakeBatchesRepository()
    audit_repository = FakeAuditRepository()
    lifecycle = SessionLifecycleService(
        sessions_repository,
        batches_repository,
        audit_repository,
        policy=POLICY,
    )
    service = BatchesService(
        batches_repository=batches_repository,
        sessions_repository=sessions_repository,
        courses_repository=FakeCoursesRepository(courses or [course]),
        identity_repository=FakeIdentityRepository(users or []),
        audit_repository=audit_repository,
        lifecycle=lifecycle,
        policy=POLICY,
    )
    return SimpleNamespace(
        service=service,
        course=(courses or [course])[0],
        sessions=sessions_repository,
        batches=batches_repository,
        audit=audit_repository,
    )


def _payload(course_id, **overrides) -> BatchCreate:
    data = {
        "course_id": course_id,
        "start_date": date(2026, 11, 2),
        "schedule": [PatternEntry(day="tuesday", time="18:00"), PatternEntry(day="Friday", time="18:00")],
        "tutor_id": uuid4(),
        "max_students": 3,
    }
    data.update(overrides)
    return BatchCreate(**data)


def _existing_batch(course_id, **overrides) -> FakeBatch:
    data = {
        "id": uuid4(),
        "course_id": course_id,
        "batch_number": 1,
        "batch_name": "Foundations of Python - Batch #1",
        "start_date": date(2026, 11, 2),
        "current_tutor_id": None,
        "max_students": 2,
        "schedule": [{"day": "Tuesday", "time": "18:00"}],
        "total_sessions": 8,
    }
    data.update(overrides)
    return FakeBatch(**data)


@pytest.mark.asyncio
async def test_create_batch_generates_full_session_set(clock) -> None:
    ctx = _build()
    payload = _payload(ctx.course.id)

    created = await ctx.service.create_batch(payload, ADMIN)

    batch = created.batch
    assert batch.batch_number == 1
    assert batch.batch_name == "Foundations of Python - Batch #1"
    assert batch.schedule == [{"day": "Tuesday", "time": "18:00"}, {"day": "Friday", "time": "18:00"}]
    assert batch.total_sessions == 8
    assert batch.status == BatchStatusEnum.ACTIVE
    assert batch.progress == {"current_session": 1, "completed_sessions": 0}

    assert [row.session_number for row in created.sessions] == list(range(1, 9))
    assert created.sessions[0].scheduled_at == datetime(2026, 11, 3, 18, 0, tzinfo=IST)
    assert created.sessions[-1].scheduled_at == datetime(2026, 11, 27, 18, 0, tzinfo=IST)
    assert created.sessions[2].curriculum_topic == "Topic 3"
    assert all(row.assigned_tutor_id == payload.tutor_id for row in created.sessions)
    assert all(row.status == SessionStatusEnum.SCHEDULED for row in created.sessions)

    assert ctx.audit.event_types() == ["batch.sessions.generated"]
    assert len(ctx.audit.events[0]["payload"]["session_ids"]) == 8
    assert ctx.audit.logs[0]["action"] == "batch.create"


@pytest.mark.asyncio
async def test_create_batch_numbers_per_course_and_honours_override(clock) -> None:
    ctx = _build()
    ctx.batches.batches[uuid4()] = _existing_batch(ctx.course.id, batch_number=3)

    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=2), ADMIN)

    assert created.batch.batch_number == 4
    assert created.batch.batch_name == "Foundations of Python - Batch #4"
    assert len(created.sessions) == 2
    assert created.batch.total_sessions == 2


@pytest.mark.asyncio
async def test_create_batch_with_past_start_date_starts_from_now(clock) -> None:
    clock(datetime(2026, 11, 3, 13, 0, tzinfo=timezone.utc))
    ctx = _build()

    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=1), ADMIN)

    assert created.sessions[0].scheduled_at == datetime(2026, 11, 6, 18, 0, tzinfo=IST)


@pytest.mark.asyncio
async def test_create_batch_carries_generation_warnings(clock) -> None:
    ctx = _build()
    payload = _payload(ctx.course.id, total_sessions=2)
    await ctx.service.create_batch(payload, ADMIN)

    created = await ctx.service.create_batch(payload, ADMIN)

    assert len(created.sessions) == 2
    assert all(draft.warnings for draft in created.drafts)


@pytest.mark.asyncio
async def test_create_batch_guards(clock) -> None:
    inactive = FakeCourse(id=uuid4(), name="Retired", total_sessions=4, is_active=False)
    ctx = _build(courses=[inactive])

    with pytest.raises(UnauthorizedException):
        await ctx.service.create_batch(_payload(inactive.id), make_actor(RoleEnum.TUTOR))
    with pytest.raises(BusinessRuleException):
        await ctx.service.create_batch(_payload(inactive.id), ADMIN)
    with pytest.raises(NotFoundException):
        await ctx.service.create_batch(_payload(uuid4()), ADMIN)
    assert ctx.batches.batches == {}
    assert ctx.sessions.sessions == []


@pytest.mark.asyncio
async def test_pattern_outside_business_hours_creates_nothing(clock) -> None:
    ctx = _build()
    payload = _payload(ctx.course.id, schedule=[PatternEntry(day="Monday", time="23:00")])

    with pytest.raises(BusinessRuleException):
        await ctx.service.create_batch(payload, ADMIN)
    assert ctx.batches.batches == {}


@pytest.mark.asyncio
async def test_update_batch_status_transitions(clock) -> None:
    ctx = _build()
    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=3), ADMIN)
    batch_id = created.batch.id

    paused = await ctx.service.update_batch(batch_id, BatchUpdate(status=BatchStatusEnum.PAUSED), ADMIN)
    assert paused.status == BatchStatusEnum.PAUSED

    completed = await ctx.service.update_batch(batch_id, BatchUpdate(status=BatchStatusEnum.COMPLETED), ADMIN)
    assert completed.status == BatchStatusEnum.COMPLETED
    assert all(row.status == SessionStatusEnum.COMPLETED for row in created.sessions)
    assert "batch.completed" in ctx.audit.event_types()

    with pytest.raises(InvalidTransitionException) as exc_info:
        await ctx.service.update_batch(batch_id, BatchUpdate(status=BatchStatusEnum.ACTIVE), ADMIN)
    assert exc_info.value.details == {"current": "Completed", "attempted": "Active"}


@pytest.mark.asyncio
async def test_reactivate_batch_goes_through_lifecycle(clock) -> None:
    ctx = _build()
    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=3), ADMIN)
    await ctx.service.update_batch(created.batch.id, BatchUpdate(status=BatchStatusEnum.COMPLETED), ADMIN)

    batch = await ctx.service.reactivate_batch(created.batch.id, 2, ADMIN)

    assert batch.status == BatchStatusEnum.ACTIVE
    assert [row.status for row in created.sessions] == [
        SessionStatusEnum.COMPLETED,
        SessionStatusEnum.SCHEDULED,
        SessionStatusEnum.SCHEDULED,
    ]


@pytest.mark.asyncio
async def test_max_students_cannot_drop_below_active_roster(clock) -> None:
    students = [make_user(RoleEnum.STUDENT) for _ in range(2)]
    ctx = _build(users=students)
    batch = _existing_batch(ctx.course.id, max_students=3)
    ctx.batches.batches[batch.id] = batch
    for student in students:
        await ctx.service.enroll_student(batch.id, student.id, ADMIN)

    with pytest.raises(BusinessRuleException):
        await ctx.service.update_batch(batch.id, BatchUpdate(max_students=1), ADMIN)

    updated = await ctx.service.update_batch(batch.id, BatchUpdate(max_students=2), ADMIN)
    assert updated.max_students == 2


@pytest.mark.asyncio
async def test_enroll_student_rules(clock) -> None:
    first, second, third = (make_user(RoleEnum.STUDENT) for _ in range(3))
    tutor = make_user(RoleEnum.TUTOR)
    ctx = _build(users=[first, second, third, tutor])
    batch = _existing_batch(ctx.course.id, max_students=2)
    ctx.batches.batches[batch.id] = batch

    enrollment = await ctx.service.enroll_student(batch.id, first.id, ADMIN)
    assert enrollment.status == EnrollmentStatusEnum.ACTIVE

    with pytest.raises(ConflictException):
        await ctx.service.enroll_student(batch.id, first.id, ADMIN)
    with pytest.raises(BusinessRuleException, match="Only students"):
        await ctx.service.enroll_student(batch.id, tutor.id, ADMIN)

    await ctx.service.enroll_student(batch.id, second.id, ADMIN)
    with pytest.raises(BusinessRuleException, match="Batch is full"):
        await ctx.service.enroll_student(batch.id, third.id, ADMIN)

    batch.status = BatchStatusEnum.CANCELLED
    with pytest.raises(BusinessRuleException):
        await ctx.service.enroll_student(batch.id, third.id, ADMIN)
    assert [log["action"] for log in ctx.audit.logs] == ["enrollment.create", "enrollment.create"]


@pytest.mark.asyncio
async def test_enrollment_status_transitions(clock) -> None:
    student = make_user(RoleEnum.STUDENT)
    ctx = _build(users=[student])
    batch = _existing_batch(ctx.course.id)
    ctx.batches.batches[batch.id] = batch
    enrollment = await ctx.service.enroll_student(batch.id, student.id, ADMIN)

    dropped = await ctx.service.update_enrollment_status(enrollment.id, EnrollmentStatusEnum.DROPPED, ADMIN)
    assert dropped.status == EnrollmentStatusEnum.DROPPED

    with pytest.raises(InvalidTransitionException):
        await ctx.service.update_enrollment_status(enrollment.id, EnrollmentStatusEnum.ACTIVE, ADMIN)

    # A dropped student may be enrolled again.
    again = await ctx.service.enroll_student(batch.id, student.id, ADMIN)
    assert again.id != enrollment.id


@pytest.mark.asyncio
async def test_get_batch_projects_roster_for_viewer(clock) -> None:
    tutor = make_user(RoleEnum.TUTOR, first_name="Ravi", last_name="Kumar")
    student = make_user(RoleEnum.STUDENT, first_name="Meera", last_name="Nair")
    ctx = _build(users=[tutor, student])
    batch = _existing_batch(ctx.course.id, current_tutor_id=tutor.id)
    ctx.batches.batches[batch.id] = batch
    await ctx.service.enroll_student(batch.id, student.id, ADMIN)

    admin_view = await ctx.service.get_batch(batch.id, ADMIN)
    assert isinstance(admin_view.students[0], AdminUserView)
    assert admin_view.students[0].email == student.email
    assert admin_view.active_enrollments == 1

    tutor_view = await ctx.service.get_batch(batch.id, make_actor(RoleEnum.TUTOR, tutor.id))
    assert isinstance(tutor_view.students[0], TutorUserView)
    assert tutor_view.students[0].last_name == "N."
    assert not hasattr(tutor_view.students[0], "email")

    student_view = await ctx.service.get_batch(batch.id, make_actor(RoleEnum.STUDENT, student.id))
    assert student_view.tutor.first_name == "Ravi"
    assert student_view.tutor.last_name == "K."

    with pytest.raises(UnauthorizedException):
        await ctx.service.get_batch(batch.id, make_actor(RoleEnum.STUDENT))


@pytest.mark.asyncio
async def test_student_progress_counts_own_attendance(clock) -> None:
    student = make_user(RoleEnum.STUDENT)
    ctx = _build(users=[student])
    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=4), ADMIN)
    await ctx.service.enroll_student(created.batch.id, student.id, ADMIN)
    first, second = created.sessions[:2]
    await ctx.service.lifecycle.mark_attendance(first.id, {student.id: "present"}, ADMIN)
    await ctx.service.lifecycle.mark_attendance(second.id, {student.id: "absent"}, ADMIN)

    [entry] = await ctx.service.get_student_progress(make_actor(RoleEnum.STUDENT, student.id))

    assert entry.batch.id == created.batch.id
    assert entry.progress.total_sessions == 4
    assert entry.progress.completed_sessions == 2
    assert entry.progress.attended_sessions == 1
    assert entry.progress.progress_percentage == 50
    assert entry.progress.attendance_rate == 50

    with pytest.raises(UnauthorizedException):
        await ctx.service.get_student_progress(ADMIN)


@pytest.mark.asyncio
async def test_get_progress_returns_live_and_cached_figures(clock) -> None:
    ctx = _build()
    created = await ctx.service.create_batch(_payload(ctx.course.id, total_sessions=3), ADMIN)
    await ctx.service.lifecycle.mark_attendance(created.sessions[0].id, {uuid4(): "present"}, ADMIN)

    progress, cached = await ctx.service.get_progress(created.batch.id, ADMIN)

    assert progress.total_active == 3
    assert progress.completed == 1
    assert progress.attendance_rate_overall == 100
    assert progress.current_session == 2
    assert cached == {"current_session": 2, "completed_sessions": 1}
