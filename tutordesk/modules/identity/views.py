"""Role-scoped projections of user records.

Contact data (email, phone, timezone, profile data) is visible to admins only.
Tutors and students see other people as first name plus last-name initial.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Union
from uuid import UUID

from pydantic import BaseModel

from tutordesk.core.enums import RoleEnum


class RestrictedUserView(BaseModel):
    """Projection shared by tutor and student viewers."""

    id: UUID
    first_name: str
    last_name: str
    role: RoleEnum
    is_active: bool


class TutorUserView(RestrictedUserView):
    """How a tutor sees students and fellow tutors."""


class StudentUserView(RestrictedUserView):
    """How a student sees their tutor and classmates."""


class AdminUserView(BaseModel):
    """Full record, admin viewers only."""

    id: UUID
    first_name: str
    last_name: str
    role: RoleEnum
    is_active: bool
    email: str
    phone: str | None
    timezone: str
    profile_data: dict[str, Any]
    created_at: datetime


UserView = Union[AdminUserView, TutorUserView, StudentUserView]


def _last_initial(last_name: str | None) -> str:
    return f"{last_name[0]}." if last_name else ""


def _admin_view(user: Any) -> AdminUserView:
    return AdminUserView(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role.name,
        is_active=user.is_active,
        email=user.email,
        phone=user.phone,
        timezone=user.timezone,
        profile_data=dict(user.profile_data or {}),
        created_at=user.created_at,
    )


def _restricted(view_cls: type[RestrictedUserView]):
    def _build(user: Any) -> RestrictedUserView:
        return view_cls(
            id=user.id,
            first_name=user.first_name,
            last_name=_last_initial(user.last_name),
            role=user.role.name,
            is_active=user.is_active,
        )

    return _build


_VIEW_BUILDERS = {
    RoleEnum.ADMIN: _admin_view,
    RoleEnum.TUTOR: _restricted(TutorUserView),
    RoleEnum.STUDENT: _restricted(StudentUserView),
}


def project_user(user: Any, viewer_role: RoleEnum) -> UserView:
    """Return the view of ``user`` that ``viewer_role`` is allowed to see."""
    return _VIEW_BUILDERS[RoleEnum(viewer_role)](user)
