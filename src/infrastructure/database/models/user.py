# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""User table, keyed by the identity provider's subject."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IdMixin,
    TimestampMixin,
    VersionMixin,
)


class User(IdMixin, VersionMixin, TimestampMixin, Base):
    """An account acting as parent or teacher.

    The onboarding timestamps are written by the onboarding flow and only
    checked for presence here.
    """

    __tablename__ = "users"

    subject_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    school_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    role_selected_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    name_set_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
