"""Audit API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tutordesk.modules.audit.schemas import AuditLogRead, OutboxEventRead
from tutordesk.modules.audit.service import AuditService, get_audit_service
from tutordesk.modules.identity.service import get_current_user
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/logs", response_model=Page[AuditLogRead])
async def list_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: AuditService = Depends(get_audit_service),
    current_user=Depends(get_current_user),
) -> Page[AuditLogRead]:
    """List audit logs, optionally for one batch or session."""
    items, total = await service.list_logs(
        current_user,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [AuditLogRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/outbox/pending", response_model=list[OutboxEventRead])
async def list_pending_outbox(
    limit: int = Query(default=100, ge=1, le=500),
    service: AuditService = Depends(get_audit_service),
    current_user=Depends(get_current_user),
) -> list[OutboxEventRead]:
    """List pending outbox events."""
    items = await service.list_pending_outbox(current_user, limit=limit)
    return [OutboxEventRead.model_validate(item) for item in items]


@router.post("/outbox/{event_id}/ack", response_model=OutboxEventRead)
async def acknowledge_outbox_event(
    event_id: UUID,
    service: AuditService = Depends(get_audit_service),
    current_user=Depends(get_current_user),
) -> OutboxEventRead:
    event = await service.acknowledge(event_id, current_user)
    return OutboxEventRead.model_validate(event)
