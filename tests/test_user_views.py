from __future__ import annotations

import pytest

from tests.fakes import make_user
from tutordesk.core.enums import RoleEnum
from tutordesk.modules.identity.views import (
    AdminUserView,
    StudentUserView,
    TutorUserView,
    project_user,
)


def test_admin_sees_full_record() -> None:
    user = make_user(RoleEnum.STUDENT, first_name="Meera", last_name="Nair", email="meera@example.com")

    view = project_user(user, RoleEnum.ADMIN)

    assert isinstance(view, AdminUserView)
    assert view.email == "meera@example.com"
    assert view.last_name == "Nair"
    assert view.phone == user.phone


@pytest.mark.parametrize(
    ("viewer", "view_cls"),
    [(RoleEnum.TUTOR, TutorUserView), (RoleEnum.STUDENT, StudentUserView)],
)
def test_non_admins_see_first_name_and_initial(viewer: RoleEnum, view_cls: type) -> None:
    user = make_user(RoleEnum.TUTOR, first_name="Ravi", last_name="Kumar")

    view = project_user(user, viewer)

    assert type(view) is view_cls
    assert view.first_name == "Ravi"
    assert view.last_name == "K."
    assert view.role == RoleEnum.TUTOR
    dumped = view.model_dump()
    assert "email" not in dumped
    assert "phone" not in dumped


def test_missing_last_name_projects_empty_initial() -> None:
    user = make_user(RoleEnum.STUDENT, last_name="")

    assert project_user(user, RoleEnum.STUDENT).last_name == ""


def test_viewer_role_accepts_plain_string() -> None:
    user = make_user(RoleEnum.STUDENT)

    assert isinstance(project_user(user, "admin"), AdminUserView)
