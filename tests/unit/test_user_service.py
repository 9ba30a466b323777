# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the user service."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.principal import Role
from src.domains.user import InvalidUserDataError, UserNotFoundError, UserService


@pytest.fixture
def users(db: AsyncSession) -> UserService:
    return UserService(db)


class TestSyncUser:
    """Tests for sync_user."""

    @pytest.mark.asyncio
    async def test_creates_record(self, users) -> None:
        user = await users.sync_user("auth0|new", role="parent", name=" Ana ")

        assert user.role == Role.PARENT.value
        assert user.name == "Ana"
        assert user.role_selected_at is not None
        assert user.name_set_at is not None

    @pytest.mark.asyncio
    async def test_role_selected_at_stamped_once(self, users) -> None:
        first = await users.sync_user("auth0|new", role="parent")
        stamped = first.role_selected_at

        second = await users.sync_user("auth0|new", role="teacher")

        assert second.role == Role.TEACHER.value
        assert second.role_selected_at == stamped

    @pytest.mark.asyncio
    async def test_sync_without_fields_creates_bare_record(self, users) -> None:
        user = await users.sync_user("auth0|bare")

        assert user.role is None
        assert await users.get_role("auth0|bare") is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"role": "principal"},
            {"name": "   "},
            {"name": "x" * 101},
        ],
    )
    async def test_invalid_data(self, users, kwargs) -> None:
        with pytest.raises(InvalidUserDataError):
            await users.sync_user("auth0|new", **kwargs)

    @pytest.mark.asyncio
    async def test_blank_subject(self, users) -> None:
        with pytest.raises(InvalidUserDataError):
            await users.sync_user("  ", role="parent")


class TestLookups:
    """Tests for get_user and get_role."""

    @pytest.mark.asyncio
    async def test_get_user_not_found(self, users) -> None:
        with pytest.raises(UserNotFoundError):
            await users.get_user("auth0|nobody")

    @pytest.mark.asyncio
    async def test_get_role(self, users, teacher, parent) -> None:
        assert await users.get_role(teacher) is Role.TEACHER
        assert await users.get_role(parent) is Role.PARENT
        assert await users.get_role("auth0|nobody") is None
