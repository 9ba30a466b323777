# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Declarative base and shared column mixins.

Identifiers are opaque UUID strings. Denormalized membership sets are
stored as JSON lists of identifiers rather than join tables, so every
mutable record carries a version counter that conditional updates match
on before modifying.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.utils.datetime import utc_now

# JSON list of identifiers; JSONB on PostgreSQL so membership filters
# compile to @> and can use a GIN index.
IdList = JSON().with_variant(postgresql.JSONB(), "postgresql")


def new_id() -> str:
    """Generate a new opaque record identifier."""
    return str(uuid4())


class Base(DeclarativeBase):
    """Declarative base for all SchoolConnect tables."""

    pass


class IdMixin:
    """Primary key column."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)


class VersionMixin:
    """Optimistic concurrency counter, bumped on every conditional update."""

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class TimestampMixin:
    """Creation and modification timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )
