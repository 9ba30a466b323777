# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User service for identity-backed user records.

This module provides the UserService that handles:
- Upserting the user record for an identity subject
- Recording when onboarding steps (role selection, name) were completed
- Role lookups used by the membership rules

Users are authenticated by an external identity provider; the record here
only links the provider's subject to the user's role and display name.

Example:
    >>> user_service = UserService(db_session)
    >>> user = await user_service.sync_user("auth0|42", role="parent", name="Ana")
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import InvalidInputError, NotFoundError, SchoolConnectError
from src.core.principal import Role, parse_role
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import User
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 100


class UserServiceError(SchoolConnectError):
    """Base exception for user service errors."""

    pass


class UserNotFoundError(UserServiceError, NotFoundError):
    """Raised when a user is not found."""

    pass


class InvalidUserDataError(UserServiceError, InvalidInputError):
    """Raised when a role or display name is invalid."""

    pass


class UserService:
    """Service for user record management.

    Attributes:
        db: Async database session.
        users: Collection over the users table.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the user service.

        Args:
            db: Async database session.
        """
        self.db = db
        self.users = Collection(db, User)

    async def sync_user(
        self,
        subject_id: str,
        role: str | Role | None = None,
        name: str | None = None,
        email: str | None = None,
    ) -> User:
        """Create or update the user record for an identity subject.

        Only the fields that are passed are written. role_selected_at and
        name_set_at are stamped the first time a role or name is set.

        Args:
            subject_id: Identity provider subject.
            role: Role to record, if any.
            name: Display name to record, if any.
            email: Email address to record, if any.

        Returns:
            The stored user.

        Raises:
            InvalidUserDataError: If the subject, role or name is invalid.
        """
        subject_id = (subject_id or "").strip()
        if not subject_id:
            raise InvalidUserDataError("Subject identifier is required")

        values: dict[str, Any] = {}
        if role is not None:
            try:
                values["role"] = parse_role(role).value
            except InvalidInputError as e:
                raise InvalidUserDataError(e.message) from e
        if name is not None:
            name = name.strip()
            if not name or len(name) > MAX_DISPLAY_NAME_LENGTH:
                raise InvalidUserDataError(
                    f"Name must be 1-{MAX_DISPLAY_NAME_LENGTH} characters"
                )
            values["name"] = name
        if email is not None:
            values["email"] = email.strip() or None

        existing = await self.users.find_one({"subject_id": subject_id})
        now = utc_now()
        if "role" in values and (existing is None or existing.role_selected_at is None):
            values["role_selected_at"] = now
        if "name" in values and (existing is None or existing.name_set_at is None):
            values["name_set_at"] = now

        result = await self.users.update_one(
            {"subject_id": subject_id},
            values=values,
            upsert=True,
        )
        if result.upserted_id:
            logger.info("Created user record for %s", subject_id)
        elif result.modified:
            logger.info("Updated user record for %s: %s", subject_id, sorted(values))

        return await self.get_user(subject_id)

    async def get_user(self, subject_id: str) -> User:
        """Get the user record for a subject.

        Raises:
            UserNotFoundError: If no record exists.
        """
        user = await self.users.find_one({"subject_id": subject_id})
        if user is None:
            raise UserNotFoundError(f"User {subject_id} not found")
        return user

    async def get_role(self, subject_id: str) -> Role | None:
        """Get the recorded role of a subject, or None if unknown."""
        user = await self.users.find_one({"subject_id": subject_id})
        if user is None or user.role is None:
            return None
        return Role(user.role)

    async def set_school(self, subject_id: str, school_id: str) -> None:
        """Record the school a user belongs to."""
        await self.users.update_one(
            {"subject_id": subject_id},
            values={"school_id": school_id},
        )
