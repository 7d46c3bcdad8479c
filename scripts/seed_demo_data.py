"""Seed idempotent demo data for local/non-production environments."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tutordesk.core.config import get_settings
from tutordesk.core.database import SessionLocal, close_engine
from tutordesk.core.enums import RoleEnum, SkillLevelEnum
from tutordesk.core.security import hash_password, verify_password
from tutordesk.modules.audit.repository import AuditRepository
from tutordesk.modules.batches.models import Batch
from tutordesk.modules.batches.repository import BatchesRepository
from tutordesk.modules.batches.schemas import BatchCreate, PatternEntry
from tutordesk.modules.batches.service import BatchesService
from tutordesk.modules.courses.models import Course
from tutordesk.modules.courses.repository import CoursesRepository
from tutordesk.modules.identity.models import Role, User
from tutordesk.modules.identity.repository import IdentityRepository
from tutordesk.modules.sessions.repository import SessionsRepository
from tutordesk.modules.sessions.service import SessionLifecycleService
from tutordesk.shared.utils import utc_now

DEMO_PASSWORD = "DemoPass123!"

DEMO_ADMIN_EMAIL = "demo-admin@tutordesk.dev"
DEMO_TUTOR_EMAIL = "demo-tutor@tutordesk.dev"
DEMO_STUDENT_EMAIL = "demo-student@tutordesk.dev"

DEMO_COURSE_NAME = "Foundations of Python"
DEMO_CURRICULUM = (
    "Variables and types",
    "Control flow",
    "Functions",
    "Collections",
    "Modules and packages",
    "Files and errors",
    "Classes",
    "Mini project",
)
DEMO_PATTERN = (("Tuesday", "18:00"), ("Friday", "18:00"))


@dataclass(slots=True)
class SeedStats:
    roles_created: int = 0
    users_created: int = 0
    users_updated: int = 0
    course_created: bool = False
    batch_created: bool = False
    sessions_created: int = 0
    enrollment_created: bool = False
    batch_id: str | None = None


async def _ensure_roles(session: AsyncSession) -> int:
    created = 0
    for role_name in RoleEnum:
        existing = await session.scalar(select(Role).where(Role.name == role_name))
        if existing is None:
            session.add(Role(name=role_name))
            created += 1
    await session.flush()
    return created


async def _ensure_user(
    session: AsyncSession,
    *,
    email: str,
    role_name: RoleEnum,
    first_name: str,
    last_name: str,
) -> tuple[User, bool]:
    role = await session.scalar(select(Role).where(Role.name == role_name))
    if role is None:
        raise RuntimeError(f"Role {role_name} was not found after ensure_roles")

    user = await session.scalar(
        select(User).options(selectinload(User.role)).where(User.email == email),
    )
    created = False
    if user is None:
        user = User(
            email=email,
            password_hash=hash_password(DEMO_PASSWORD),
            first_name=first_name,
            last_name=last_name,
            timezone=get_settings().scheduling_timezone,
            profile_data={},
            is_active=True,
            role_id=role.id,
        )
        session.add(user)
        created = True
    else:
        if not verify_password(DEMO_PASSWORD, user.password_hash):
            user.password_hash = hash_password(DEMO_PASSWORD)
        if user.role_id != role.id:
            user.role_id = role.id
        if not user.is_active:
            user.is_active = True

    await session.flush()
    await session.refresh(user, attribute_names=["role"])
    return user, created


async def _ensure_course(session: AsyncSession) -> tuple[Course, bool]:
    course = await session.scalar(select(Course).where(Course.name == DEMO_COURSE_NAME))
    if course is not None:
        return course, False

    course = Course(
        name=DEMO_COURSE_NAME,
        description="Eight-session introduction for complete beginners.",
        skill_level=SkillLevelEnum.BEGINNER,
        total_sessions=len(DEMO_CURRICULUM),
        session_duration_minutes=60,
        curriculum=[
            {"session_number": number, "topic": topic}
            for number, topic in enumerate(DEMO_CURRICULUM, start=1)
        ],
        prerequisites=[],
        is_active=True,
    )
    session.add(course)
    await session.flush()
    return course, True


def _build_batches_service(session: AsyncSession) -> BatchesService:
    sessions_repository = SessionsRepository(session)
    batches_repository = BatchesRepository(session)
    audit_repository = AuditRepository(session)
    return BatchesService(
        batches_repository=batches_repository,
        sessions_repository=sessions_repository,
        courses_repository=CoursesRepository(session),
        identity_repository=IdentityRepository(session),
        audit_repository=audit_repository,
        lifecycle=SessionLifecycleService(sessions_repository, batches_repository, audit_repository),
    )


async def _ensure_batch(
    session: AsyncSession,
    stats: SeedStats,
    *,
    course: Course,
    admin_user: User,
    tutor_user: User,
    student_user: User,
) -> Batch:
    service = _build_batches_service(session)
    batch = await session.scalar(select(Batch).where(Batch.course_id == course.id, Batch.batch_number == 1))
    if batch is None:
        created = await service.create_batch(
            BatchCreate(
                course_id=course.id,
                start_date=(utc_now() + timedelta(days=1)).date(),
                schedule=[PatternEntry(day=day, time=at) for day, at in DEMO_PATTERN],
                tutor_id=tutor_user.id,
                max_students=5,
            ),
            admin_user,
        )
        batch = created.batch
        stats.batch_created = True
        stats.sessions_created = len(created.sessions)

    if await service.batches_repository.get_active_enrollment(batch.id, student_user.id) is None:
        await service.enroll_student(batch.id, student_user.id, admin_user)
        stats.enrollment_created = True
    return batch


async def _run_seed(*, allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError(
            "Refusing to seed demo data in production. "
            "Re-run with --allow-production only if you are absolutely sure.",
        )

    stats = SeedStats()

    async with SessionLocal() as session:
        try:
            stats.roles_created = await _ensure_roles(session)

            admin_user, admin_created = await _ensure_user(
                session,
                email=DEMO_ADMIN_EMAIL,
                role_name=RoleEnum.ADMIN,
                first_name="Asha",
                last_name="Admin",
            )
            tutor_user, tutor_created = await _ensure_user(
                session,
                email=DEMO_TUTOR_EMAIL,
                role_name=RoleEnum.TUTOR,
                first_name="Ravi",
                last_name="Tutor",
            )
            student_user, student_created = await _ensure_user(
                session,
                email=DEMO_STUDENT_EMAIL,
                role_name=RoleEnum.STUDENT,
                first_name="Meera",
                last_name="Student",
            )
            stats.users_created = sum([admin_created, tutor_created, student_created])
            stats.users_updated = 3 - stats.users_created

            course, stats.course_created = await _ensure_course(session)
            batch = await _ensure_batch(
                session,
                stats,
                course=course,
                admin_user=admin_user,
                tutor_user=tutor_user,
                student_user=student_user,
            )
            stats.batch_id = str(batch.id)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Seed idempotent demo data for TutorDesk (users, a course with curriculum, "
            "one batch with generated sessions, an enrollment)."
        ),
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Demo seed completed.")
    print(f"- Roles created: {stats.roles_created}")
    print(f"- Users created: {stats.users_created}")
    print(f"- Users updated: {stats.users_updated}")
    print(f"- Course created: {stats.course_created}")
    print(f"- Batch created: {stats.batch_created} ({stats.sessions_created} sessions)")
    print(f"- Enrollment created: {stats.enrollment_created}")
    print(f"- Batch id: {stats.batch_id}")
    print("")
    print("Demo credentials (non-production only):")
    print(f"- admin:   {DEMO_ADMIN_EMAIL} / {DEMO_PASSWORD}")
    print(f"- tutor:   {DEMO_TUTOR_EMAIL} / {DEMO_PASSWORD}")
    print(f"- student: {DEMO_STUDENT_EMAIL} / {DEMO_PASSWORD}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        stats = asyncio.run(_run_seed(allow_production=args.allow_production))
    except Exception as exc:
        print(f"Demo seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
