from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from tests.fakes import IST, POLICY, FakeCourse, FakeSession, FakeSessionsRepository
from tutordesk.modules.sessions.calendar import parse_pattern
from tutordesk.modules.sessions.conflicts import ConflictChecker
from tutordesk.modules.sessions.generator import SessionGenerator, curriculum_topic, resolve_target_count

PATTERN = parse_pattern([{"day": "Tuesday", "time": "18:00"}, {"day": "Friday", "time": "18:00"}])


def _course(total_sessions: int = 4) -> FakeCourse:
    return FakeCourse(
        id=uuid4(),
        name="Foundations of Python",
        total_sessions=total_sessions,
        curriculum=[
            {"session_number": 1, "topic": "Variables and types"},
            {"session": 2, "topic": "Control flow"},
            {"session_number": 3, "topic": ""},
        ],
    )


def test_curriculum_topic_falls_back_to_session_label() -> None:
    curriculum = _course().curriculum

    assert curriculum_topic(curriculum, 1) == "Variables and types"
    assert curriculum_topic(curriculum, 2) == "Control flow"
    assert curriculum_topic(curriculum, 3) == "Session 3"
    assert curriculum_topic(curriculum, 4) == "Session 4"
    assert curriculum_topic(None, 1) == "Session 1"


def test_resolve_target_count_prefers_override_then_course() -> None:
    assert resolve_target_count(_course(12), 3, 8) == 3
    assert resolve_target_count(_course(12), None, 8) == 12
    assert resolve_target_count(_course(0), None, 8) == 8


@pytest.mark.asyncio
async def test_generate_builds_numbered_drafts_with_topics() -> None:
    tutor_id = uuid4()
    generator = SessionGenerator(ConflictChecker(FakeSessionsRepository()), POLICY)

    drafts = await generator.generate(
        start_at=datetime(2026, 11, 2, tzinfo=IST),
        pattern=PATTERN,
        course=_course(),
        tutor_id=tutor_id,
        target_count=4,
    )

    assert [draft.session_number for draft in drafts] == [1, 2, 3, 4]
    assert [draft.curriculum_topic for draft in drafts] == [
        "Variables and types",
        "Control flow",
        "Session 3",
        "Session 4",
    ]
    assert all(draft.assigned_tutor_id == tutor_id for draft in drafts)
    assert all(not draft.warnings for draft in drafts)


@pytest.mark.asyncio
async def test_generate_keeps_conflicting_drafts_with_warning() -> None:
    tutor_id = uuid4()
    busy = FakeSession(
        id=uuid4(),
        batch_id=uuid4(),
        session_number=1,
        curriculum_topic="Other batch",
        scheduled_at=datetime(2026, 11, 6, 12, 0, tzinfo=timezone.utc),
        assigned_tutor_id=tutor_id,
    )
    generator = SessionGenerator(ConflictChecker(FakeSessionsRepository([busy])), POLICY)

    drafts = await generator.generate(
        start_at=datetime(2026, 11, 2, tzinfo=IST),
        pattern=PATTERN,
        course=_course(),
        tutor_id=tutor_id,
        target_count=4,
    )

    assert len(drafts) == 4
    assert [bool(draft.warnings) for draft in drafts] == [False, True, False, False]
    assert "1 other session" in drafts[1].warnings[0]
