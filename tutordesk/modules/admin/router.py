"""Admin API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from tutordesk.core.enums import RoleEnum
from tutordesk.modules.admin.schemas import AdminOverviewRead, AlertRead
from tutordesk.modules.admin.service import AdminService, get_admin_service
from tutordesk.modules.identity.service import require_roles

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/overview", response_model=AdminOverviewRead)
async def get_overview(
    service: AdminService = Depends(get_admin_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> AdminOverviewRead:
    """Dashboard counters."""
    return await service.get_overview(current_user)


@router.get("/alerts", response_model=list[AlertRead])
async def get_alerts(
    service: AdminService = Depends(get_admin_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> list[AlertRead]:
    """Sessions that need admin attention."""
    alerts = await service.get_alerts(current_user)
    return [AlertRead.model_validate(alert) for alert in alerts]
