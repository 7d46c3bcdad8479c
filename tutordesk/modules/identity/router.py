"""Identity API router."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from tutordesk.core.enums import RoleEnum
from tutordesk.modules.identity.schemas import (
    LoginRequest,
    RefreshRequest,
    TokenPair,
    UserCreate,
    UserRead,
    UserUpdate,
)
from tutordesk.modules.identity.service import (
    IdentityService,
    get_current_user,
    get_identity_service,
    get_optional_user,
    require_roles,
)
from tutordesk.modules.identity.views import AdminUserView, project_user
from tutordesk.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/identity", tags=["identity"])


@router.post("/auth/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(
    payload: UserCreate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(get_optional_user),
) -> UserRead:
    """Register a student account, or any account when called by an admin."""
    user = await service.register(payload, current_user)
    return UserRead.model_validate(user)


@router.post("/auth/login", response_model=TokenPair)
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Sign in by email/password and return JWT token pair."""
    return await service.login(payload)


@router.post("/auth/refresh", response_model=TokenPair)
async def refresh_tokens(
    payload: RefreshRequest,
    service: IdentityService = Depends(get_identity_service),
) -> TokenPair:
    """Rotate refresh token and issue new token pair."""
    return await service.refresh_tokens(payload.refresh_token)


@router.get("/users/me", response_model=UserRead)
async def get_me(current_user=Depends(get_current_user)) -> UserRead:
    """Return profile of authenticated user."""
    return UserRead.model_validate(current_user)


@router.post("/users", response_model=AdminUserView, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> AdminUserView:
    """Create a tutor, student or admin account."""
    user = await service.register(payload, current_user)
    return project_user(user, RoleEnum.ADMIN)


@router.get("/users", response_model=Page[AdminUserView])
async def list_users(
    role: RoleEnum | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    pagination=Depends(get_pagination_params),
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> Page[AdminUserView]:
    items, total = await service.list_users(
        current_user,
        role=role,
        is_active=is_active,
        search=search,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [project_user(item, RoleEnum.ADMIN) for item in items]
    return build_page(serialized, total, pagination)


@router.patch("/users/{user_id}", response_model=AdminUserView)
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> AdminUserView:
    user = await service.update_user(user_id, payload, current_user)
    return project_user(user, RoleEnum.ADMIN)


@router.delete("/users/{user_id}", response_model=AdminUserView)
async def deactivate_user(
    user_id: UUID,
    service: IdentityService = Depends(get_identity_service),
    current_user=Depends(require_roles(RoleEnum.ADMIN)),
) -> AdminUserView:
    """Deactivate a user; the record is kept."""
    user = await service.deactivate_user(user_id, current_user)
    return project_user(user, RoleEnum.ADMIN)
