# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

Services run against an in-memory SQLite database (aiosqlite) built from
the ORM metadata. StaticPool keeps the single connection alive for the
whole test, so every session sees the same data.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable, Generator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.core.config import clear_settings_cache
from src.domains.class_ import ClassService
from src.domains.membership import MembershipService, RosterEntry
from src.domains.user import UserService
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import Base, Class, Student
from src.models.class_ import ClassResponse

TEACHER_ID = "auth0|teacher-1"
OTHER_TEACHER_ID = "auth0|teacher-2"
PARENT_ID = "auth0|parent-1"
OTHER_PARENT_ID = "auth0|parent-2"


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an API integration test"
    )


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Make every test read settings from a clean cache."""
    clear_settings_cache()
    yield
    clear_settings_cache()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db(sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for service tests."""
    async with sessionmaker() as session:
        yield session


# =============================================================================
# Payload Fixtures
# =============================================================================


@pytest.fixture
def pdf_bytes() -> bytes:
    """A minimal payload that passes PDF validation."""
    return b"%PDF-1.4\n" + b"% filler\n" * 20 + b"%%EOF\n"


@pytest.fixture
def other_pdf_bytes() -> bytes:
    """A second valid payload with different content."""
    return b"%PDF-1.7\n" + b"% signed copy\n" * 20 + b"%%EOF\n"


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def teacher(db: AsyncSession) -> str:
    """A user with the teacher role."""
    await UserService(db).sync_user(TEACHER_ID, role="teacher", name="Ms. Rivera")
    return TEACHER_ID


@pytest_asyncio.fixture
async def other_teacher(db: AsyncSession) -> str:
    """A second teacher with no relation to the default class."""
    await UserService(db).sync_user(OTHER_TEACHER_ID, role="teacher")
    return OTHER_TEACHER_ID


@pytest_asyncio.fixture
async def parent(db: AsyncSession) -> str:
    """A user with the parent role."""
    await UserService(db).sync_user(PARENT_ID, role="parent", name="Sam Wilson")
    return PARENT_ID


@pytest_asyncio.fixture
async def other_parent(db: AsyncSession) -> str:
    """A second parent with no relation to any student."""
    await UserService(db).sync_user(OTHER_PARENT_ID, role="parent")
    return OTHER_PARENT_ID


@pytest_asyncio.fixture
async def classroom(db: AsyncSession, teacher: str) -> ClassResponse:
    """A class taught by the default teacher."""
    return await ClassService(db).create_teacher_class(
        teacher,
        "Maple Elementary",
        "Room 4",
        "2025-2026",
    )


@pytest.fixture
def make_class(db: AsyncSession) -> Callable[..., Awaitable[str]]:
    """Factory inserting a class directly, without a code."""

    async def _make(school_id: str, name: str = "Room 5", teacher_ids: list[str] | None = None) -> str:
        cls = await Collection(db, Class).insert_one({
            "school_id": school_id,
            "name": name,
            "term": "2025-2026",
            "teacher_ids": teacher_ids or [],
            "student_ids": [],
            "guardian_ids": [],
        })
        return cls.id

    return _make


@pytest.fixture
def add_students(db: AsyncSession) -> Callable[..., Awaitable[list[str]]]:
    """Factory creating students in a class by name."""

    async def _add(class_id: str, *names: str) -> list[str]:
        entries = [RosterEntry(name=name, grade="3") for name in names]
        return await MembershipService(db).create_students(class_id, entries)

    return _add


@pytest.fixture
def assert_reciprocal(db: AsyncSession) -> Callable[[], Awaitable[None]]:
    """Check the class/student reference invariant over the whole database."""

    async def _check() -> None:
        classes = await Collection(db, Class).find()
        students = await Collection(db, Student).find()
        for cls in classes:
            for student in students:
                listed = student.id in (cls.student_ids or [])
                back = cls.id in (student.class_ids or [])
                assert listed == back, (
                    f"class {cls.id} lists student {student.id}: {listed}, "
                    f"student lists class: {back}"
                )
        # Every listed student exists and every student has a class.
        student_ids = {s.id for s in students}
        for cls in classes:
            assert set(cls.student_ids or []) <= student_ids
        for student in students:
            assert student.class_ids, f"orphaned student {student.id} was kept"

    return _check
