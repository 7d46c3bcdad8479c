from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException

from tests.fakes import make_actor
from tutordesk.core.enums import RoleEnum
from tutordesk.modules.identity.schemas import LoginRequest, UserCreate, UserUpdate
from tutordesk.modules.identity.service import IdentityService, require_roles
from tutordesk.modules.identity.views import AdminUserView, project_user
from tutordesk.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)

CREATED_AT = datetime(2026, 10, 1, tzinfo=timezone.utc)


@dataclass
class FakeRefreshToken:
    token_id: str
    user_id: UUID
    expires_at: datetime
    revoked_at: datetime | None = None


class FakeIdentityRepository:
    def __init__(self) -> None:
        self.roles = {}
        self.users = {}
        self.tokens: dict[str, FakeRefreshToken] = {}

    async def get_role_by_name(self, name: RoleEnum):
        return self.roles.get(name)

    async def create_role(self, name: RoleEnum):
        role = SimpleNamespace(id=uuid4(), name=name)
        self.roles[name] = role
        return role

    async def get_user_by_email(self, email: str):
        return next((user for user in self.users.values() if user.email == email), None)

    async def get_user_by_id(self, user_id: UUID):
        return self.users.get(user_id)

    async def create_user(self, **fields):
        role = next(role for role in self.roles.values() if role.id == fields["role_id"])
        user = SimpleNamespace(
            id=uuid4(),
            role=role,
            is_active=True,
            profile_data={},
            created_at=CREATED_AT + timedelta(minutes=len(self.users)),
            **fields,
        )
        self.users[user.id] = user
        return user

    async def list_users(self, *, role, is_active, search, limit, offset):
        rows = sorted(self.users.values(), key=lambda user: user.created_at, reverse=True)
        if role is not None:
            rows = [user for user in rows if user.role.name == role]
        if is_active is not None:
            rows = [user for user in rows if user.is_active is is_active]
        if search:
            needle = search.lower()
            rows = [
                user
                for user in rows
                if any(needle in value.lower() for value in (user.first_name, user.last_name, user.email))
            ]
        return rows[offset : offset + limit], len(rows)

    async def update_user(self, user, **changes):
        for key, value in changes.items():
            setattr(user, key, value)
        if "role_id" in changes:
            user.role = next(role for role in self.roles.values() if role.id == changes["role_id"])
        return user

    async def revoke_user_refresh_tokens(self, user_id: UUID, revoked_at: datetime) -> int:
        live = [token for token in self.tokens.values() if token.user_id == user_id and token.revoked_at is None]
        for token in live:
            token.revoked_at = revoked_at
        return len(live)

    async def create_refresh_token(self, user_id: UUID, token_id: str, expires_at: datetime):
        self.tokens[token_id] = FakeRefreshToken(token_id=token_id, user_id=user_id, expires_at=expires_at)

    async def get_refresh_token_by_id(self, token_id: str):
        return self.tokens.get(token_id)

    async def revoke_refresh_token(self, token: FakeRefreshToken, revoked_at: datetime) -> None:
        token.revoked_at = revoked_at


async def _service() -> IdentityService:
    service = IdentityService(FakeIdentityRepository())  # type: ignore[arg-type]
    await service.ensure_default_roles()
    return service


def _user_payload(role: RoleEnum = RoleEnum.STUDENT, email: str = "meera@example.com") -> UserCreate:
    return UserCreate(
        email=email,
        password="StrongPass123!",
        first_name="Meera",
        last_name="Nair",
        role=role,
    )


@pytest.mark.asyncio
async def test_ensure_default_roles_is_idempotent() -> None:
    service = await _service()
    await service.ensure_default_roles()

    assert set(service.repository.roles) == set(RoleEnum)


@pytest.mark.asyncio
async def test_self_registration_is_limited_to_students() -> None:
    service = await _service()

    student = await service.register(_user_payload())
    assert student.role.name == RoleEnum.STUDENT
    assert student.password_hash != "StrongPass123!"

    with pytest.raises(UnauthorizedException):
        await service.register(_user_payload(RoleEnum.TUTOR, "ravi@example.com"))
    with pytest.raises(UnauthorizedException):
        await service.register(
            _user_payload(RoleEnum.ADMIN, "ravi@example.com"),
            make_actor(RoleEnum.TUTOR),
        )

    tutor = await service.register(_user_payload(RoleEnum.TUTOR, "ravi@example.com"), make_actor(RoleEnum.ADMIN))
    assert tutor.role.name == RoleEnum.TUTOR


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected() -> None:
    service = await _service()
    await service.register(_user_payload())

    with pytest.raises(ConflictException):
        await service.register(_user_payload())


@pytest.mark.asyncio
async def test_login_and_refresh_rotation() -> None:
    service = await _service()
    user = await service.register(_user_payload())

    with pytest.raises(UnauthorizedException):
        await service.login(LoginRequest(email="meera@example.com", password="wrong-password"))

    tokens = await service.login(LoginRequest(email="meera@example.com", password="StrongPass123!"))
    assert (await service.get_user_from_access_token(tokens.access_token)).id == user.id

    rotated = await service.refresh_tokens(tokens.refresh_token)
    assert rotated.refresh_token != tokens.refresh_token
    with pytest.raises(UnauthorizedException):
        await service.refresh_tokens(tokens.refresh_token)
    with pytest.raises(UnauthorizedException):
        await service.get_user_from_access_token(rotated.refresh_token)


@pytest.mark.asyncio
async def test_garbage_token_is_rejected_with_401() -> None:
    service = await _service()

    with pytest.raises(HTTPException) as exc_info:
        await service.get_user_from_access_token("not-a-jwt")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_inactive_user_cannot_login() -> None:
    service = await _service()
    user = await service.register(_user_payload())
    user.is_active = False

    with pytest.raises(UnauthorizedException):
        await service.login(LoginRequest(email="meera@example.com", password="StrongPass123!"))


async def _populated_service() -> tuple[IdentityService, SimpleNamespace]:
    service = await _service()
    admin = await service.register(
        _user_payload(RoleEnum.ADMIN, "admin@example.com"),
        make_actor(RoleEnum.ADMIN),
    )
    meera = await service.register(_user_payload())
    ravi = await service.register(
        UserCreate(
            email="ravi.kumar@example.com",
            password="StrongPass123!",
            first_name="Ravi",
            last_name="Kumar",
            role=RoleEnum.TUTOR,
        ),
        admin,
    )
    anita = await service.register(
        UserCreate(
            email="anita@example.com",
            password="StrongPass123!",
            first_name="Anita",
            last_name="Desai",
        ),
    )
    anita.is_active = False
    return service, SimpleNamespace(admin=admin, meera=meera, ravi=ravi, anita=anita)


async def _list(service: IdentityService, actor, **filters):
    params = {"role": None, "is_active": None, "search": None, "limit": 20, "offset": 0}
    params.update(filters)
    return await service.list_users(actor, **params)


@pytest.mark.asyncio
async def test_list_users_filters_by_role_activity_and_search() -> None:
    service, people = await _populated_service()

    items, total = await _list(service, people.admin)
    assert total == 4
    assert [user.id for user in items] == [people.anita.id, people.ravi.id, people.meera.id, people.admin.id]

    students, _ = await _list(service, people.admin, role=RoleEnum.STUDENT)
    assert {user.id for user in students} == {people.meera.id, people.anita.id}

    active_students, _ = await _list(service, people.admin, role=RoleEnum.STUDENT, is_active=True)
    assert [user.id for user in active_students] == [people.meera.id]

    by_surname, _ = await _list(service, people.admin, search=" kum ")
    assert [user.id for user in by_surname] == [people.ravi.id]

    by_email, total = await _list(service, people.admin, search="ANITA@")
    assert [user.id for user in by_email] == [people.anita.id]
    assert total == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("role", [RoleEnum.TUTOR, RoleEnum.STUDENT])
async def test_user_management_is_admin_only(role: RoleEnum) -> None:
    service, people = await _populated_service()
    actor = make_actor(role)

    with pytest.raises(UnauthorizedException):
        await _list(service, actor)
    with pytest.raises(UnauthorizedException):
        await service.update_user(people.meera.id, UserUpdate(first_name="M"), actor)
    with pytest.raises(UnauthorizedException):
        await service.deactivate_user(people.meera.id, actor)
    assert people.meera.is_active is True


@pytest.mark.asyncio
async def test_update_user_changes_role_password_and_contact_data() -> None:
    service, people = await _populated_service()

    user = await service.update_user(
        people.meera.id,
        UserUpdate(role=RoleEnum.TUTOR, password="NewSecret456!", phone="+91 98450 00000"),
        people.admin,
    )

    assert user.role.name == RoleEnum.TUTOR
    assert user.phone == "+91 98450 00000"
    tokens = await service.login(LoginRequest(email="meera@example.com", password="NewSecret456!"))
    assert tokens.access_token
    with pytest.raises(UnauthorizedException):
        await service.login(LoginRequest(email="meera@example.com", password="StrongPass123!"))

    view = project_user(user, RoleEnum.ADMIN)
    assert isinstance(view, AdminUserView)
    assert view.role == RoleEnum.TUTOR
    assert view.email == "meera@example.com"


@pytest.mark.asyncio
async def test_update_user_rejects_taken_email_and_cleared_fields() -> None:
    service, people = await _populated_service()

    with pytest.raises(ConflictException):
        await service.update_user(people.meera.id, UserUpdate(email="ravi.kumar@example.com"), people.admin)
    with pytest.raises(BusinessRuleException):
        await service.update_user(people.meera.id, UserUpdate(first_name=None), people.admin)
    with pytest.raises(NotFoundException):
        await service.update_user(uuid4(), UserUpdate(first_name="Nobody"), people.admin)

    unchanged = await service.update_user(people.meera.id, UserUpdate(email="meera@example.com"), people.admin)
    assert unchanged.email == "meera@example.com"


@pytest.mark.asyncio
async def test_deactivate_user_revokes_refresh_tokens_and_blocks_login() -> None:
    service, people = await _populated_service()
    tokens = await service.login(LoginRequest(email="meera@example.com", password="StrongPass123!"))

    user = await service.deactivate_user(people.meera.id, people.admin)

    assert user.is_active is False
    assert people.meera.id in service.repository.users
    assert all(token.revoked_at is not None for token in service.repository.tokens.values())
    with pytest.raises(UnauthorizedException):
        await service.refresh_tokens(tokens.refresh_token)
    with pytest.raises(UnauthorizedException):
        await service.login(LoginRequest(email="meera@example.com", password="StrongPass123!"))


@pytest.mark.asyncio
async def test_admin_cannot_deactivate_or_demote_self() -> None:
    service, people = await _populated_service()

    with pytest.raises(BusinessRuleException):
        await service.deactivate_user(people.admin.id, people.admin)
    with pytest.raises(BusinessRuleException):
        await service.update_user(people.admin.id, UserUpdate(role=RoleEnum.TUTOR), people.admin)

    renamed = await service.update_user(people.admin.id, UserUpdate(first_name="Asha"), people.admin)
    assert renamed.is_active is True
    assert renamed.role.name == RoleEnum.ADMIN


@pytest.mark.asyncio
async def test_require_roles_admits_only_listed_roles() -> None:
    admin_only = require_roles(RoleEnum.ADMIN)
    admin = make_actor(RoleEnum.ADMIN)

    assert await admin_only(current_user=admin) is admin
    with pytest.raises(UnauthorizedException):
        await admin_only(current_user=make_actor(RoleEnum.TUTOR))
