"""Admin business logic layer."""

from __future__ import annotations

from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import BatchStatusEnum, RoleEnum, SessionStatusEnum
from tutordesk.modules.admin.alerts import Alert, build_alerts
from tutordesk.modules.admin.repository import AdminRepository
from tutordesk.modules.admin.schemas import AdminOverviewRead
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.identity.models import User
from tutordesk.shared.exceptions import UnauthorizedException
from tutordesk.shared.utils import utc_now

settings = get_settings()


class AdminService:
    """Admin domain service."""

    def __init__(self, repository: AdminRepository, audit_repository: AuditRepository) -> None:
        self.repository = repository
        self.audit_repository = audit_repository

    async def _record_view(self, actor: User, action: str, payload: dict) -> None:
        await self.audit_repository.create_audit_log(
            actor_id=actor.id,
            action=action,
            entity_type="admin_dashboard",
            entity_id=None,
            payload=payload,
        )

    async def get_overview(self, actor: User) -> AdminOverviewRead:
        """Return aggregated dashboard counters."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view the dashboard")

        now = utc_now()
        local_today = now.astimezone(ZoneInfo(settings.scheduling_timezone)).date()
        day_start = datetime.combine(local_today, time(0, 0), tzinfo=ZoneInfo(settings.scheduling_timezone))

        users = await self.repository.count_active_users_by_role()
        batches = await self.repository.count_batches_by_status()
        sessions = await self.repository.count_sessions_by_status()

        overview = AdminOverviewRead(
            generated_at=now,
            students_active=users.get(RoleEnum.STUDENT, 0),
            tutors_active=users.get(RoleEnum.TUTOR, 0),
            courses_active=await self.repository.count_active_courses(),
            enrollments_active=await self.repository.count_active_enrollments(),
            sessions_today=await self.repository.count_sessions_between(day_start, day_start + timedelta(days=1)),
            outbox_pending=await self.repository.count_pending_outbox(),
            batches_by_status={status.value: batches.get(status, 0) for status in BatchStatusEnum},
            sessions_by_status={status.value: sessions.get(status, 0) for status in SessionStatusEnum},
        )
        await self._record_view(actor, "admin.overview.view", {"generated_at": now.isoformat()})
        return overview

    async def get_alerts(self, actor: User) -> list[Alert]:
        """Sessions needing attention: no tutor in the next 24h, or low recent attendance."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view alerts")

        now = utc_now()
        unassigned = await self.repository.list_unassigned_sessions(now, now + timedelta(hours=24))
        recent = await self.repository.list_completed_sessions_since(now - timedelta(days=7))
        batch_names = await self.repository.get_batch_names(row.batch_id for row in [*unassigned, *recent])

        alerts = build_alerts(
            unassigned=unassigned,
            recently_completed=recent,
            batch_names=batch_names,
            low_attendance_threshold=settings.low_attendance_threshold,
        )
        await self._record_view(actor, "admin.alerts.view", {"alerts": len(alerts)})
        return alerts


async def get_admin_service(session: AsyncSession = Depends(get_db_session)) -> AdminService:
    """Dependency provider for admin service."""
    return AdminService(AdminRepository(session), AuditRepository(session))
