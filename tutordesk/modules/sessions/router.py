"""Sessions API router."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from tutordesk.core.enums import SessionStatusEnum
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.sessions.schemas import (
    AssignTutorRequest,
    AttendanceRequest,
    AttendanceResult,
    AttendanceStatsRead,
    CancelRequest,
    CascadeResultRead,
    MeetingReferenceRequest,
    NotesRequest,
    RescheduleRequest,
    SessionRead,
    SupersedeRequest,
    SupersedeResultRead,
)
from tutordesk.modules.sessions.service import SessionLifecycleService, get_session_lifecycle_service
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=Page[SessionRead])
async def list_sessions(
    batch_id: UUID | None = Query(default=None),
    status: SessionStatusEnum | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> Page[SessionRead]:
    """List sessions visible to the current user."""
    items, total = await service.list_sessions(
        current_user,
        batch_id=batch_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [SessionRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: UUID,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    row = await service.get_session(session_id, current_user)
    return SessionRead.model_validate(row)


@router.post("/{session_id}/attendance", response_model=AttendanceResult)
async def mark_attendance(
    session_id: UUID,
    payload: AttendanceRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> AttendanceResult:
    """Mark attendance and complete the session."""
    row, stats = await service.mark_attendance(session_id, payload.attendance, current_user)
    return AttendanceResult(
        session=SessionRead.model_validate(row),
        attendance_stats=AttendanceStatsRead(present=stats.present, total=stats.total, rate=stats.rate),
    )


@router.post("/{session_id}/cancel", response_model=SessionRead)
async def cancel_session(
    session_id: UUID,
    payload: CancelRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    row = await service.cancel_session(session_id, payload.reason, current_user)
    return SessionRead.model_validate(row)


@router.post("/{session_id}/reschedule", response_model=SessionRead)
async def reschedule_session(
    session_id: UUID,
    payload: RescheduleRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    """Move a single session in place."""
    row = await service.reschedule_session(session_id, payload.new_datetime, payload.reason, current_user)
    return SessionRead.model_validate(row)


@router.post("/{session_id}/reschedule/cascade", response_model=CascadeResultRead)
async def reschedule_cascade(
    session_id: UUID,
    payload: RescheduleRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> CascadeResultRead:
    """Move a session and shift all later scheduled sessions of its batch."""
    result = await service.reschedule_cascade(session_id, payload.new_datetime, payload.reason, current_user)
    return CascadeResultRead.model_validate(result)


@router.post("/{session_id}/reschedule/supersede", response_model=SupersedeResultRead)
async def reschedule_supersede(
    session_id: UUID,
    payload: SupersedeRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SupersedeResultRead:
    """Retire a session and append a replacement at the end of the batch."""
    result = await service.reschedule_supersede(
        session_id,
        payload.reason,
        current_user,
        new_datetime=payload.new_datetime,
    )
    return SupersedeResultRead.model_validate(result)


@router.put("/{session_id}/notes", response_model=SessionRead)
async def save_notes(
    session_id: UUID,
    payload: NotesRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    row = await service.save_notes(session_id, payload.notes, current_user)
    return SessionRead.model_validate(row)


@router.put("/{session_id}/tutor", response_model=SessionRead)
async def assign_tutor(
    session_id: UUID,
    payload: AssignTutorRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    row = await service.assign_tutor(session_id, payload.tutor_id, current_user)
    return SessionRead.model_validate(row)


@router.put("/{session_id}/meeting", response_model=SessionRead)
async def attach_meeting_reference(
    session_id: UUID,
    payload: MeetingReferenceRequest,
    service: SessionLifecycleService = Depends(get_session_lifecycle_service),
    current_user=Depends(get_current_user),
) -> SessionRead:
    row = await service.attach_meeting_reference(session_id, payload.meeting_reference, current_user)
    return SessionRead.model_validate(row)
