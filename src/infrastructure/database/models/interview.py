# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent-teacher interview slots."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IdMixin,
    TimestampMixin,
    VersionMixin,
)


class InterviewSlot(IdMixin, VersionMixin, TimestampMixin, Base):
    """A time slot on a class, claimed by a guardian or booked by the teacher.

    A slot is claimed once it names a student together with either a
    guardian account or a manually entered guardian.
    """

    __tablename__ = "interview_slots"
    __table_args__ = (
        Index("ix_interview_slots_class_start", "class_id", "start_at"),
        Index("ix_interview_slots_class_student", "class_id", "student_id"),
    )

    class_id: Mapped[str] = mapped_column(String(36), nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    student_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    guardian_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manual_guardian_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manual_guardian_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_claimed(self) -> bool:
        return bool(self.student_id) and bool(
            self.guardian_id or self.manual_guardian_name or self.manual_guardian_email
        )
