"""Operational alerts derived from upcoming and recent sessions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from tutordesk.modules.sessions.progress import attendance_stats

SEVERITY_RANK = {"error": 3, "warning": 2, "info": 1}


@dataclass(frozen=True, slots=True)
class Alert:
    type: str
    severity: str
    message: str
    session_id: UUID
    batch_id: UUID
    scheduled_at: datetime


def build_alerts(
    *,
    unassigned: Iterable[Any],
    recently_completed: Iterable[Any],
    batch_names: Mapping[UUID, str],
    low_attendance_threshold: int,
) -> list[Alert]:
    """Errors first, then warnings; newest session first within a severity."""
    alerts: list[Alert] = []

    for row in unassigned:
        batch_name = batch_names.get(row.batch_id, str(row.batch_id))
        alerts.append(
            Alert(
                type="missing_tutor",
                severity="error",
                message=f"Session {row.session_number} of {batch_name} has no assigned tutor",
                session_id=row.id,
                batch_id=row.batch_id,
                scheduled_at=row.scheduled_at,
            ),
        )

    for row in recently_completed:
        if not row.attendance:
            continue
        stats = attendance_stats(row.attendance)
        if stats.rate >= low_attendance_threshold:
            continue
        batch_name = batch_names.get(row.batch_id, str(row.batch_id))
        alerts.append(
            Alert(
                type="low_attendance",
                severity="warning",
                message=f"Low attendance ({stats.rate}%) in {batch_name} - Session {row.session_number}",
                session_id=row.id,
                batch_id=row.batch_id,
                scheduled_at=row.scheduled_at,
            ),
        )

    alerts.sort(key=lambda alert: alert.scheduled_at, reverse=True)
    alerts.sort(key=lambda alert: SEVERITY_RANK[alert.severity], reverse=True)
    return alerts
