# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User domain package.

This package provides user record functionality:
- UserService: upsert and lookup of identity-backed users
- Exceptions: User-related error types

Example:
    >>> from src.domains.user import UserService
    >>> service = UserService(db)
    >>> user = await service.sync_user("auth0|42", role="teacher")
"""

from src.domains.user.service import (
    InvalidUserDataError,
    UserNotFoundError,
    UserService,
    UserServiceError,
)

__all__ = [
    "UserService",
    "UserServiceError",
    "UserNotFoundError",
    "InvalidUserDataError",
]
