"""Weekly recurrence pattern resolution.

Turns a batch pattern such as ``[{"day": "Tuesday", "time": "18:00"}, {"day":
"Friday", "time": "18:00"}]`` into concrete, timezone-aware session instants.
Everything here is pure date arithmetic: no I/O, no clock reads and no tutor
availability lookups.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

from tutordesk.core.config import Settings
from tutordesk.core.enums import WeekdayEnum
from tutordesk.shared.exceptions import BusinessRuleException, ScheduleUnsatisfiableException

logger = logging.getLogger(__name__)

_WEEKDAYS_BY_INDEX = list(WeekdayEnum)


@dataclass(frozen=True, slots=True)
class PatternSlot:
    """One (weekday, local time-of-day) entry of a weekly pattern."""

    weekday: WeekdayEnum
    time_of_day: time

    def as_record(self) -> dict[str, str]:
        return {"day": self.weekday.value, "time": self.time_of_day.strftime("%H:%M")}


@dataclass(frozen=True, slots=True)
class CalendarPolicy:
    """Deployment calendar rules applied while resolving patterns."""

    timezone: ZoneInfo
    holidays: frozenset[str] = field(default_factory=frozenset)
    business_hours: tuple[int, int] | None = None
    horizon_days: int = 365

    @classmethod
    def from_settings(cls, settings: Settings) -> CalendarPolicy:
        return cls(
            timezone=ZoneInfo(settings.scheduling_timezone),
            holidays=frozenset(settings.scheduling_holidays),
            business_hours=(settings.business_hours_start, settings.business_hours_end),
            horizon_days=settings.scheduling_search_horizon_days,
        )

    def is_holiday(self, day: date) -> bool:
        return day.strftime("%m-%d") in self.holidays

    def within_business_hours(self, moment: time) -> bool:
        if self.business_hours is None:
            return True
        start_hour, end_hour = self.business_hours
        return start_hour <= moment.hour <= end_hour


@dataclass(frozen=True, slots=True)
class ResolvedSlot:
    session_number: int
    scheduled_at: datetime
    weekday: WeekdayEnum


def weekday_of(day: date) -> WeekdayEnum:
    """Map a calendar date onto the Sunday=0 weekday scale."""
    return _WEEKDAYS_BY_INDEX[(day.weekday() + 1) % 7]


def parse_pattern(records: Iterable[Mapping[str, Any] | PatternSlot]) -> list[PatternSlot]:
    """Build pattern slots from stored ``{"day", "time"}`` records, keeping their order."""
    slots: list[PatternSlot] = []
    for record in records:
        if isinstance(record, PatternSlot):
            slots.append(record)
            continue
        try:
            weekday = WeekdayEnum(str(record["day"]).strip().capitalize())
        except (KeyError, ValueError) as exc:
            raise BusinessRuleException(f"Unknown weekday in pattern entry {dict(record)!r}") from exc

        raw_time = record.get("time")
        if isinstance(raw_time, time):
            time_of_day = raw_time
        else:
            try:
                hours, minutes = str(raw_time).split(":")[:2]
                time_of_day = time(int(hours), int(minutes))
            except (TypeError, ValueError) as exc:
                raise BusinessRuleException(f"Invalid time in pattern entry {dict(record)!r}") from exc
        slots.append(PatternSlot(weekday=weekday, time_of_day=time_of_day))
    return slots


def validate_pattern(pattern: list[PatternSlot], policy: CalendarPolicy) -> None:
    """Reject empty patterns and entries outside business hours."""
    if not pattern:
        raise BusinessRuleException("Schedule pattern must contain at least one weekday/time entry")
    for slot in pattern:
        if not policy.within_business_hours(slot.time_of_day):
            start_hour, end_hour = policy.business_hours or (0, 23)
            raise BusinessRuleException(
                f"{slot.weekday.value} {slot.time_of_day:%H:%M} is outside business hours "
                f"({start_hour:02d}:00-{end_hour:02d}:59)",
            )


def check_slot_allowed(moment: datetime, policy: CalendarPolicy) -> None:
    """Reject an explicit session instant that lands on a holiday or outside business hours."""
    local = moment.astimezone(policy.timezone)
    if policy.is_holiday(local.date()):
        raise BusinessRuleException(f"{local.date().isoformat()} is a holiday")
    if not policy.within_business_hours(local.timetz()):
        raise BusinessRuleException(f"{local:%H:%M} is outside business hours")


def resolve_session_dates(
    start_at: datetime,
    pattern: list[PatternSlot],
    target_count: int,
    policy: CalendarPolicy,
    *,
    first_session_number: int = 1,
) -> list[ResolvedSlot]:
    """Walk forward day by day from ``start_at`` and collect ``target_count`` pattern instants.

    ``start_at`` must be an aware instant: a pattern time on the start day is
    eligible only if it is not earlier than ``start_at``. Each calendar day yields
    at most one session, the first pattern entry for that weekday that is
    eligible. Holidays are skipped. The walk gives up after
    ``policy.horizon_days`` days and raises ``ScheduleUnsatisfiableException``.
    """
    if start_at.tzinfo is None:
        raise ValueError("start_at must be timezone-aware")
    if target_count < 1:
        raise BusinessRuleException("Session count must be at least 1")
    validate_pattern(pattern, policy)

    by_weekday: dict[WeekdayEnum, list[PatternSlot]] = {}
    for slot in pattern:
        by_weekday.setdefault(slot.weekday, []).append(slot)

    local_start = start_at.astimezone(policy.timezone)
    resolved: list[ResolvedSlot] = []

    for offset in range(policy.horizon_days + 1):
        day = local_start.date() + timedelta(days=offset)
        weekday = weekday_of(day)
        if weekday not in by_weekday or policy.is_holiday(day):
            continue

        for slot in by_weekday[weekday]:
            candidate = datetime.combine(day, slot.time_of_day, tzinfo=policy.timezone)
            if candidate >= start_at:
                resolved.append(
                    ResolvedSlot(
                        session_number=first_session_number + len(resolved),
                        scheduled_at=candidate,
                        weekday=weekday,
                    ),
                )
                break

        if len(resolved) == target_count:
            return resolved

    logger.warning(
        "Pattern %s placed %s of %s sessions within %s days of %s",
        [slot.as_record() for slot in pattern],
        len(resolved),
        target_count,
        policy.horizon_days,
        start_at.isoformat(),
    )
    raise ScheduleUnsatisfiableException(
        f"Only {len(resolved)} of {target_count} sessions fit within "
        f"{policy.horizon_days} days of the start date",
        placed=len(resolved),
        requested=target_count,
    )
