# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure.

This package provides the SQLAlchemy async engine, the ORM models and the
collection-style adapter the domain services are written against.

Example:
    from src.infrastructure.database import Collection, get_session
    from src.infrastructure.database.models import Class

    async with get_session() as session:
        cls = await Collection(session, Class).find_one({"code": "QZQPPS"})
"""

from src.infrastructure.database.collections import (
    Collection,
    DuplicateKeyError,
    UpdateResult,
    VersionConflictError,
)
from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_schema,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)

__all__ = [
    # Connection
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "create_schema",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
    # Collections
    "Collection",
    "DuplicateKeyError",
    "UpdateResult",
    "VersionConflictError",
]
