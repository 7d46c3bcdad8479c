"""Attendance and batch progress aggregation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from tutordesk.core.enums import AttendanceMarkEnum, SessionStatusEnum
from tutordesk.shared.utils import round_half_up, rounded_percent


@dataclass(frozen=True, slots=True)
class AttendanceStats:
    present: int
    total: int
    rate: int


@dataclass(frozen=True, slots=True)
class BatchProgress:
    total_active: int
    completed: int
    attendance_rate_overall: int
    current_session: int | None

    def summary(self) -> dict[str, int | None]:
        """Shape cached on the batch row."""
        return {"current_session": self.current_session, "completed_sessions": self.completed}


def attendance_stats(attendance: Mapping[str, Any] | None) -> AttendanceStats:
    marks = list((attendance or {}).values())
    present = sum(1 for mark in marks if str(mark) == AttendanceMarkEnum.PRESENT.value)
    return AttendanceStats(present=present, total=len(marks), rate=rounded_percent(present, len(marks)))


def compute_progress(sessions: Iterable[Any]) -> BatchProgress:
    """Derive batch progress from its sessions.

    Superseded (``Rescheduled``) sessions are excluded from every figure. The
    overall attendance rate is the rounded mean of per-session rates over
    completed sessions that carry attendance.
    """
    total_active = 0
    completed = 0
    rates: list[int] = []
    pending_numbers: list[int] = []

    for row in sessions:
        if row.status == SessionStatusEnum.RESCHEDULED:
            continue
        total_active += 1
        if row.status == SessionStatusEnum.COMPLETED:
            completed += 1
            if row.attendance:
                rates.append(attendance_stats(row.attendance).rate)
        elif row.status == SessionStatusEnum.SCHEDULED:
            pending_numbers.append(row.session_number)

    overall = round_half_up(sum(rates) / len(rates)) if rates else 0
    return BatchProgress(
        total_active=total_active,
        completed=completed,
        attendance_rate_overall=overall,
        current_session=min(pending_numbers) if pending_numbers else None,
    )


@dataclass(frozen=True, slots=True)
class StudentProgress:
    total_sessions: int
    completed_sessions: int
    attended_sessions: int
    progress_percentage: int
    attendance_rate: int


def compute_student_progress(sessions: Iterable[Any], student_id: Any) -> StudentProgress:
    """Personal progress of one student across a batch's live sessions."""
    key = str(student_id)
    live = [row for row in sessions if row.status != SessionStatusEnum.RESCHEDULED]
    completed = [row for row in live if row.status == SessionStatusEnum.COMPLETED]
    attended = sum(
        1 for row in completed if (row.attendance or {}).get(key) == AttendanceMarkEnum.PRESENT.value
    )
    return StudentProgress(
        total_sessions=len(live),
        completed_sessions=len(completed),
        attended_sessions=attended,
        progress_percentage=rounded_percent(len(completed), len(live)),
        attendance_rate=rounded_percent(attended, len(completed)),
    )
