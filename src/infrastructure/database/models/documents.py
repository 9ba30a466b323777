# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calendar events and the documents that move through a lifecycle."""

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Index,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IdMixin,
    TimestampMixin,
    VersionMixin,
)


class CalendarEvent(IdMixin, VersionMixin, TimestampMixin, Base):
    """A class or school event, optionally gated by a permission slip."""

    __tablename__ = "calendar_events"

    school_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    class_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    requires_permission_slip: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    permission_form: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)


class PermissionSlip(IdMixin, VersionMixin, TimestampMixin, Base):
    """One slip per (event, guardian); status unsent -> sent -> signed."""

    __tablename__ = "permission_slips"
    __table_args__ = (
        UniqueConstraint("event_id", "guardian_id", name="uq_permission_slips_event_guardian"),
        Index("ix_permission_slips_guardian_status", "guardian_id", "status"),
    )

    event_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    guardian_id: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unsent")
    signed_payload: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ReportCard(IdMixin, VersionMixin, TimestampMixin, Base):
    """A report card; status draft <-> published."""

    __tablename__ = "report_cards"
    __table_args__ = (
        UniqueConstraint("student_id", "term", name="uq_report_cards_student_term"),
    )

    student_id: Mapped[str] = mapped_column(String(36), nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(255), nullable=False)
    term: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    payload: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
