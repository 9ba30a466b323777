# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class domain package.

This package provides class management functionality including:
- Creating a school and class for a teacher
- Roster changes and guardian links
- Joining and leaving classes as a parent
"""

from src.domains.class_.service import (
    ClassService,
    ClassServiceError,
    GuardianNotInClassError,
    InvalidClassDataError,
    NotATeacherError,
)
from src.domains.membership import ClassNotFoundError, StudentNotFoundError

__all__ = [
    "ClassService",
    "ClassServiceError",
    "ClassNotFoundError",
    "StudentNotFoundError",
    "InvalidClassDataError",
    "NotATeacherError",
    "GuardianNotInClassError",
]
