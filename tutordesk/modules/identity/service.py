"""Identity business logic layer."""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID, uuid4

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tutordesk.core.config import get_settings
from tutordesk.core.database import get_db_session
from tutordesk.core.enums import RoleEnum
from tutordesk.core.security import (
    decode_token,
    hash_password,
    issue_token_pair,
    oauth2_scheme,
    optional_oauth2_scheme,
    verify_password,
)
from tutordesk.modules.identity.models import User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.identity.schemas import LoginRequest, TokenPair, UserCreate, UserUpdate
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from tutordesk.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def ensure_default_roles(self) -> None:
        """Ensure all default roles exist."""
        for role_name in RoleEnum:
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                await self.repository.create_role(role_name)

    async def register(self, payload: UserCreate, actor: User | None = None) -> User:
        """Register new user; only an admin may create tutor or admin accounts."""
        if payload.role != RoleEnum.STUDENT and (actor is None or actor.role.name != RoleEnum.ADMIN):
            raise UnauthorizedException("Only admin can create tutor or admin accounts")

        existing_user = await self.repository.get_user_by_email(payload.email)
        if existing_user is not None:
            raise ConflictException("User with this email already exists")

        role = await self.repository.get_role_by_name(payload.role)
        if role is None:
            raise NotFoundException("Role not found")

        return await self.repository.create_user(
            email=payload.email,
            password_hash=hash_password(payload.password),
            first_name=payload.first_name,
            last_name=payload.last_name,
            phone=payload.phone,
            timezone=payload.timezone,
            role_id=role.id,
        )

    async def _issue_tokens(self, user: User) -> TokenPair:
        token_id = str(uuid4())
        access_token, refresh_token = issue_token_pair(str(user.id), user.role.name, token_id)
        expires_at = utc_now() + timedelta(days=settings.refresh_token_expire_days)
        await self.repository.create_refresh_token(user.id, token_id, expires_at)
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def login(self, payload: LoginRequest) -> TokenPair:
        """Authenticate user and issue JWT tokens."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise UnauthorizedException("Invalid credentials")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")
        return await self._issue_tokens(user)

    async def refresh_tokens(self, refresh_token_value: str) -> TokenPair:
        """Rotate refresh token and issue new token pair."""
        payload = decode_token(refresh_token_value)
        if payload.get("type") != "refresh":
            raise UnauthorizedException("Invalid token type")

        token_id = payload.get("jti")
        subject = payload.get("sub")
        if not token_id or not subject:
            raise UnauthorizedException("Invalid refresh token")

        db_token = await self.repository.get_refresh_token_by_id(token_id)
        if db_token is None or db_token.revoked_at is not None or db_token.expires_at <= utc_now():
            raise UnauthorizedException("Refresh token is not valid")
        await self.repository.revoke_refresh_token(db_token, utc_now())

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None or not user.is_active:
            raise UnauthorizedException("User is not valid")
        return await self._issue_tokens(user)

    async def get_user_from_access_token(self, token: str) -> User:
        """Resolve user from access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise UnauthorizedException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise UnauthorizedException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise UnauthorizedException("User not found")
        if not user.is_active:
            raise UnauthorizedException("User is inactive")
        return user


    @staticmethod
    def _ensure_admin(actor: User, message: str) -> None:
        if actor.role.name != RoleEnum.ADMIN:
            raise UnauthorizedException(message)

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.repository.get_user_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found")
        return user

    async def list_users(
        self,
        actor: User,
        *,
        role: RoleEnum | None,
        is_active: bool | None,
        search: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[User], int]:
        """List users for admin management, newest first; search matches name or email."""
        self._ensure_admin(actor, "Only admin can list users")
        return await self.repository.list_users(
            role=role,
            is_active=is_active,
            search=search.strip() if search and search.strip() else None,
            limit=limit,
            offset=offset,
        )

    async def update_user(self, user_id: UUID, payload: UserUpdate, actor: User) -> User:
        """Apply an admin edit; deactivation also revokes outstanding refresh tokens."""
        self._ensure_admin(actor, "Only admin can update users")
        user = await self._get_user(user_id)
        changes = payload.model_dump(exclude_unset=True)
        for key in ("email", "first_name", "last_name", "timezone", "is_active"):
            if key in changes and changes[key] is None:
                raise BusinessRuleException(f"Field '{key}' cannot be cleared")

        if user.id == actor.id and (
            changes.get("is_active") is False or changes.get("role") not in (None, RoleEnum.ADMIN)
        ):
            raise BusinessRuleException("Admin cannot deactivate or demote their own account")

        email = changes.get("email")
        if email is not None and email != user.email:
            existing_user = await self.repository.get_user_by_email(email)
            if existing_user is not None:
                raise ConflictException("User with this email already exists")

        password = changes.pop("password", None)
        if password is not None:
            changes["password_hash"] = hash_password(password)

        role_name = changes.pop("role", None)
        if role_name is not None:
            role = await self.repository.get_role_by_name(role_name)
            if role is None:
                raise NotFoundException("Role not found")
            changes["role_id"] = role.id

        user = await self.repository.update_user(user, **changes)
        if changes.get("is_active") is False:
            revoked = await self.repository.revoke_user_refresh_tokens(user.id, utc_now())
            logger.info("Deactivated user %s, revoked %s refresh token(s)", user.id, revoked)
        return user

    async def deactivate_user(self, user_id: UUID, actor: User) -> User:
        """Soft-delete a user: the record stays, sign-in and token refresh stop working."""
        return await self.update_user(user_id, UserUpdate(is_active=False), actor)


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User:
    """Resolve currently authenticated user from bearer token."""
    return await service.get_user_from_access_token(token)


async def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> User | None:
    """Resolve user when a bearer token is supplied, otherwise None."""
    if token is None:
        return None
    return await service.get_user_from_access_token(token)


def require_roles(*roles: RoleEnum):
    """Dependency factory that admits only users holding one of ``roles``."""

    async def _checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role.name not in roles:
            raise UnauthorizedException("Operation not permitted for your role")
        return current_user

    return _checker
