# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class code registry.

Join codes are short random strings drawn with ``secrets`` from an
alphabet without look-alike characters. A code is claimed by writing it
under the unique index on classes.code, so the uniqueness check and the
claim are one conditional operation; a collision just means another
candidate is drawn.

Example:
    >>> registry = ClassCodeRegistry(db)
    >>> cls = await registry.resolve_code(" qzqpps ")
    >>> await registry.join_by_code("auth0|parent-1", "QZQPPS")
"""

import logging
import secrets
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import ClassCodeSettings, get_settings
from src.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SchoolConnectError,
)
from src.domains.membership import ClassNotFoundError, MembershipService
from src.infrastructure.database.collections import Collection, DuplicateKeyError
from src.infrastructure.database.models import Class

logger = logging.getLogger(__name__)


class ClassCodeError(SchoolConnectError):
    """Base exception for class code errors."""

    pass


class ClassCodeNotFoundError(ClassCodeError, NotFoundError):
    """Raised when a code does not resolve to a class."""

    pass


class InvalidClassCodeError(ClassCodeError, InvalidInputError):
    """Raised when a code is blank."""

    pass


class ClassCodeExhaustedError(ClassCodeError, ConflictError):
    """Raised when no free code was found within the attempt limit."""

    pass


def normalize_code(code: str | None) -> str:
    """Normalize user-typed code text for lookup.

    Raises:
        InvalidClassCodeError: If nothing is left after trimming.
    """
    normalized = (code or "").strip().upper()
    if not normalized:
        raise InvalidClassCodeError("Please enter a class code")
    return normalized


class ClassCodeRegistry:
    """Issues and resolves class join codes.

    Attributes:
        db: Async database session.
        settings: Code alphabet, length and attempt limit.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: ClassCodeSettings | None = None,
        membership: MembershipService | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            db: Async database session.
            settings: Code settings; defaults to the application settings.
            membership: Membership service used for joins.
        """
        self.db = db
        self.settings = settings or get_settings().class_code
        self.classes = Collection(db, Class)
        self.membership = membership or MembershipService(db)

    def generate_candidate(self) -> str:
        """Draw a random code. Not checked for uniqueness."""
        return "".join(
            secrets.choice(self.settings.alphabet) for _ in range(self.settings.length)
        )

    async def generate_code(self) -> str:
        """Draw a code not currently used by any class.

        The result is only a reservation hint; callers that store it must
        still go through create_class() or assign_code() to claim it.

        Raises:
            ClassCodeExhaustedError: If every attempt hit an existing code.
        """
        for _ in range(self.settings.max_attempts):
            candidate = self.generate_candidate()
            if await self.classes.find_one({"code": candidate}) is None:
                return candidate
        raise self._exhausted()

    async def create_class(self, values: dict[str, Any]) -> Class:
        """Insert a class under a freshly claimed code.

        Args:
            values: Class column values, without a code.

        Returns:
            The created class.

        Raises:
            ClassCodeExhaustedError: If every candidate collided.
        """
        for attempt in range(1, self.settings.max_attempts + 1):
            candidate = await self.generate_code()
            try:
                cls = await self.classes.insert_one({**values, "code": candidate})
            except DuplicateKeyError:
                logger.debug("Class code %s claimed concurrently (attempt %d)", candidate, attempt)
                continue
            logger.info("Issued class code %s for class %s", candidate, cls.id)
            return cls
        raise self._exhausted()

    async def assign_code(self, class_id: str) -> str:
        """Give an existing class a code if it has none.

        Returns:
            The class's code, newly assigned or already present.

        Raises:
            ClassNotFoundError: If the class does not exist.
            ClassCodeExhaustedError: If every candidate collided.
        """
        for attempt in range(1, self.settings.max_attempts + 1):
            candidate = await self.generate_code()
            try:
                result = await self.classes.update_one(
                    {"id": class_id, "code": None},
                    values={"code": candidate},
                )
            except DuplicateKeyError:
                logger.debug("Class code %s claimed concurrently (attempt %d)", candidate, attempt)
                continue

            if result.modified:
                logger.info("Issued class code %s for class %s", candidate, class_id)
                return candidate

            cls = await self.classes.find_one({"id": class_id})
            if cls is None:
                raise ClassNotFoundError(f"Class {class_id} not found")
            if cls.code:
                return cls.code
        raise self._exhausted()

    async def resolve_code(self, code: str | None) -> Class:
        """Resolve typed code text to its class.

        Raises:
            InvalidClassCodeError: If the code is blank.
            ClassCodeNotFoundError: If no class has the code.
        """
        cls = await self.classes.find_one({"code": normalize_code(code)})
        if cls is None:
            raise ClassCodeNotFoundError("Class code not found. Please check and try again.")
        return cls

    async def join_by_code(self, guardian_id: str, code: str | None) -> Class:
        """Add a parent to the class a code resolves to.

        A repeat join succeeds without changing anything.

        Args:
            guardian_id: Parent identity.
            code: Typed code text.

        Returns:
            The joined class.

        Raises:
            InvalidClassCodeError: If the code is blank.
            ClassCodeNotFoundError: If no class has the code.
            GuardianRoleError: If the identity is not a parent.
        """
        cls = await self.resolve_code(code)
        class_id = cls.id

        if await self.membership.add_guardian_to_class(class_id, guardian_id):
            logger.info("Guardian %s joined class %s by code", guardian_id, class_id)

        return await self.classes.find_one({"id": class_id}) or cls

    def _exhausted(self) -> ClassCodeExhaustedError:
        logger.warning(
            "No free class code after %d attempts (length=%d)",
            self.settings.max_attempts,
            self.settings.length,
        )
        return ClassCodeExhaustedError(
            "Could not allocate a class code. Please try again.",
            {"attempts": self.settings.max_attempts},
        )
