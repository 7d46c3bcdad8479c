"""Audit business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.database import get_db_session
from tutordesk.core.enums import OutboxStatusEnum, RoleEnum
from tutordesk.modules.audit.models import AuditLog, OutboxEvent
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.identity.models import User
from tutordesk.shared.exceptions import ConflictException, NotFoundException, UnauthorizedException
from tutordesk.shared.utils import utc_now


class AuditService:
    """Read access to the audit trail and outbox acknowledgement."""

    def __init__(self, repository: AuditRepository) -> None:
        self.repository = repository

    async def list_logs(
        self,
        actor: User,
        *,
        entity_type: str | None,
        entity_id: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[AuditLog], int]:
        """List audit logs (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view audit logs")
        return await self.repository.list_audit_logs(
            entity_type=entity_type,
            entity_id=entity_id,
            limit=limit,
            offset=offset,
        )

    async def list_pending_outbox(self, actor: User, limit: int) -> list[OutboxEvent]:
        """List pending outbox events (admin only)."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can view outbox")
        return await self.repository.list_pending_outbox(limit)

    async def acknowledge(self, event_id: UUID, actor: User) -> OutboxEvent:
        """Mark a pending outbox event as processed by an external consumer."""
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException("Only admin can acknowledge outbox events")
        event = await self.repository.get_outbox_event(event_id)
        if event is None:
            raise NotFoundException("Outbox event not found")
        if event.status != OutboxStatusEnum.PENDING:
            raise ConflictException("Outbox event already acknowledged")
        return await self.repository.mark_outbox_processed(event, utc_now())


async def get_audit_service(session: AsyncSession = Depends(get_db_session)) -> AuditService:
    """Dependency provider for audit service."""
    return AuditService(AuditRepository(session))
