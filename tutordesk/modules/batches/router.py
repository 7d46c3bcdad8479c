"""Batches API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tutordesk.core.enums import BatchStatusEnum
from tutordesk.modules.batches.schemas import (
    BatchCreate,
    BatchCreateResult,
    BatchDetail,
    BatchProgressRead,
    BatchRead,
    BatchSessionRead,
    BatchUpdate,
    EnrollmentCreate,
    EnrollmentRead,
    EnrollmentStatusUpdate,
    GenerationWarningRead,
    ReactivateRequest,
    StudentBatchProgressRead,
)
from tutordesk.modules.batches.service import BatchesService, get_batches_service
from tutordesk.modules.identity.service import get_current_user
from tutordesk.modules.sessions.schemas import AttendanceStatsRead, SessionRead
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/batches", tags=["batches"])


@router.post("", response_model=BatchCreateResult, status_code=status.HTTP_201_CREATED)
async def create_batch(
    payload: BatchCreate,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> BatchCreateResult:
    """Create batch and generate its sessions."""
    created = await service.create_batch(payload, current_user)
    return BatchCreateResult(
        batch=BatchRead.model_validate(created.batch),
        sessions=[SessionRead.model_validate(row) for row in created.sessions],
        warnings=[
            GenerationWarningRead(session_number=draft.session_number, message=message)
            for draft in created.drafts
            for message in draft.warnings
        ],
    )


@router.get("", response_model=Page[BatchRead])
async def list_batches(
    batch_status: BatchStatusEnum | None = Query(default=None, alias="status"),
    course_id: UUID | None = Query(default=None),
    pagination=Depends(get_pagination_params),
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> Page[BatchRead]:
    """List batches visible to the current user."""
    items, total = await service.list_batches(
        current_user,
        status=batch_status,
        course_id=course_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [BatchRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.get("/me/progress", response_model=list[StudentBatchProgressRead])
async def my_progress(
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> list[StudentBatchProgressRead]:
    """Personal progress of the current student."""
    items = await service.get_student_progress(current_user)
    return [
        StudentBatchProgressRead(
            batch_id=item.batch.id,
            batch_name=item.batch.batch_name,
            course_id=item.batch.course_id,
            enrollment_date=item.enrollment.enrollment_date,
            total_sessions=item.progress.total_sessions,
            completed_sessions=item.progress.completed_sessions,
            attended_sessions=item.progress.attended_sessions,
            progress_percentage=item.progress.progress_percentage,
            attendance_rate=item.progress.attendance_rate,
        )
        for item in items
    ]


@router.get("/{batch_id}", response_model=BatchDetail)
async def get_batch(
    batch_id: UUID,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> BatchDetail:
    roster = await service.get_batch(batch_id, current_user)
    return BatchDetail(
        batch=BatchRead.model_validate(roster.batch),
        tutor=roster.tutor,
        students=roster.students,
        active_enrollments=roster.active_enrollments,
    )


@router.patch("/{batch_id}", response_model=BatchRead)
async def update_batch(
    batch_id: UUID,
    payload: BatchUpdate,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> BatchRead:
    """Update batch tutor, capacity or status."""
    batch = await service.update_batch(batch_id, payload, current_user)
    return BatchRead.model_validate(batch)


@router.post("/{batch_id}/reactivate", response_model=BatchRead)
async def reactivate_batch(
    batch_id: UUID,
    payload: ReactivateRequest,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> BatchRead:
    """Reopen a completed batch from a given session number."""
    batch = await service.reactivate_batch(batch_id, payload.resume_session_number, current_user)
    return BatchRead.model_validate(batch)


@router.get("/{batch_id}/sessions", response_model=list[BatchSessionRead])
async def list_batch_sessions(
    batch_id: UUID,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> list[BatchSessionRead]:
    rows = await service.list_batch_sessions(batch_id, current_user)
    return [
        BatchSessionRead(
            **SessionRead.model_validate(row).model_dump(),
            attendance_stats=AttendanceStatsRead(present=stats.present, total=stats.total, rate=stats.rate),
        )
        for row, stats in rows
    ]


@router.get("/{batch_id}/progress", response_model=BatchProgressRead)
async def get_progress(
    batch_id: UUID,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> BatchProgressRead:
    progress, cached = await service.get_progress(batch_id, current_user)
    return BatchProgressRead(
        total_active=progress.total_active,
        completed=progress.completed,
        attendance_rate_overall=progress.attendance_rate_overall,
        current_session=progress.current_session,
        cached=cached,
    )


@router.get("/{batch_id}/enrollments", response_model=list[EnrollmentRead])
async def list_enrollments(
    batch_id: UUID,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> list[EnrollmentRead]:
    items = await service.list_enrollments(batch_id, current_user)
    return [EnrollmentRead.model_validate(item) for item in items]


@router.post(
    "/{batch_id}/enrollments",
    response_model=EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def enroll_student(
    batch_id: UUID,
    payload: EnrollmentCreate,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> EnrollmentRead:
    """Enroll a student into a batch."""
    enrollment = await service.enroll_student(batch_id, payload.student_id, current_user)
    return EnrollmentRead.model_validate(enrollment)


@router.patch("/enrollments/{enrollment_id}", response_model=EnrollmentRead)
async def update_enrollment_status(
    enrollment_id: UUID,
    payload: EnrollmentStatusUpdate,
    service: BatchesService = Depends(get_batches_service),
    current_user=Depends(get_current_user),
) -> EnrollmentRead:
    enrollment = await service.update_enrollment_status(enrollment_id, payload.status, current_user)
    return EnrollmentRead.model_validate(enrollment)
