# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authenticated principal supplied by the external identity provider.

The core performs no authentication. The delivery layer builds a
Principal from whatever the upstream collaborator vouches for and the
services trust it as given.
"""

from dataclasses import dataclass
from enum import Enum

from src.core.exceptions import InvalidInputError


class Role(str, Enum):
    """Roles a principal can act in."""

    PARENT = "parent"
    TEACHER = "teacher"


def parse_role(value: str | Role | None) -> Role:
    """Parse a role value.

    Args:
        value: Raw role value.

    Returns:
        The matching Role.

    Raises:
        InvalidInputError: If the value is not a known role.
    """
    if isinstance(value, Role):
        return value
    try:
        return Role((value or "").strip().lower())
    except ValueError:
        raise InvalidInputError(f"Invalid role: {value!r}") from None


@dataclass(frozen=True)
class Principal:
    """The identity making a request.

    Attributes:
        subject_id: Stable identity token from the identity provider.
        role: Role the identity acts in.
    """

    subject_id: str
    role: Role

    @classmethod
    def from_values(cls, subject_id: str | None, role: str | Role | None) -> "Principal":
        """Build a principal from raw values, validating both.

        Raises:
            InvalidInputError: If the subject is blank or the role unknown.
        """
        subject = (subject_id or "").strip()
        if not subject:
            raise InvalidInputError("Subject identifier is required")
        return cls(subject_id=subject, role=parse_role(role))

    @property
    def is_parent(self) -> bool:
        """Check if the principal acts as a parent."""
        return self.role is Role.PARENT

    @property
    def is_teacher(self) -> bool:
        """Check if the principal acts as a teacher."""
        return self.role is Role.TEACHER
