# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the database connection lifecycle."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import text

from src.core.config import DatabaseSettings, Settings
from src.core.exceptions import UnavailableError
from src.infrastructure.database import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_schema,
    get_engine,
    get_session,
    init_database,
)


@pytest_asyncio.fixture
async def closed_afterwards() -> AsyncGenerator[None, None]:
    yield
    await close_database()


@pytest.mark.asyncio
async def test_sqlite_lifecycle(closed_afterwards) -> None:
    await init_database(Settings(db=DatabaseSettings(url="sqlite+aiosqlite:///:memory:")))

    assert await check_database_connection() is True

    await create_schema()
    async with get_session() as session:
        result = await session.execute(text("SELECT count(*) FROM classes"))
        assert result.scalar_one() == 0

    await close_database()
    assert await check_database_connection() is False


@pytest.mark.asyncio
async def test_unconfigured_database_is_not_ready(closed_afterwards) -> None:
    await init_database(Settings(db=DatabaseSettings(url="")))

    assert await check_database_connection() is False
    with pytest.raises(DatabaseError):
        get_engine()


def test_database_error_is_unavailable() -> None:
    error = DatabaseError("Database operation failed", RuntimeError("boom"))

    assert isinstance(error, UnavailableError)
    assert str(error) == "Database operation failed: boom"
