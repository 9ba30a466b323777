# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Check once per request that the database is ready
- Get database sessions
- Get the principal supplied by the upstream identity collaborator
- Require a role for role-specific endpoints

Example:
    @router.get("/classes")
    async def list_classes(
        db: AsyncSession = Depends(get_db),
        principal: Principal = Depends(require_teacher),
    ):
        ...
"""

import logging
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.principal import get_principal
from src.core.config import get_settings
from src.core.principal import Principal
from src.infrastructure.database.connection import (
    check_database_connection,
    close_database,
    get_session,
    init_database,
)

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def require_ready_db() -> None:
    """Fail the request if the database is not configured or reachable.

    Raises:
        HTTPException: 503 if the readiness check fails.
    """
    if not await check_database_connection():
        logger.warning("Database not ready, rejecting request")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not available",
        )


async def get_db(
    _: None = Depends(require_ready_db),
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session.

    Yields:
        AsyncSession for the request.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Principal Dependencies
# =========================================================================


def require_principal(request: Request) -> Principal:
    """Require a principal.

    Raises:
        HTTPException: 400 if the role header is invalid, 401 if no
            principal was supplied.
    """
    error = getattr(request.state, "principal_error", None)
    if error:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error,
        )

    principal = get_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return principal


def require_teacher(principal: Principal = Depends(require_principal)) -> Principal:
    """Require a principal acting as a teacher.

    Raises:
        HTTPException: 400 if the principal is not a teacher.
    """
    if not principal.is_teacher:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Teacher role required",
        )
    return principal


def require_parent(principal: Principal = Depends(require_principal)) -> Principal:
    """Require a principal acting as a parent.

    Raises:
        HTTPException: 400 if the principal is not a parent.
    """
    if not principal.is_parent:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Parent role required",
        )
    return principal
