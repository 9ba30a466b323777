# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""School, class and student tables.

Class and Student hold each other's identifiers in JSON lists. The
invariant ``student.id in class.student_ids <=> class.id in
student.class_ids`` is maintained by the membership service, not by the
database.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IdList,
    IdMixin,
    TimestampMixin,
    VersionMixin,
)


class School(IdMixin, TimestampMixin, Base):
    """A school owning zero or more classes."""

    __tablename__ = "schools"

    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Class(IdMixin, VersionMixin, TimestampMixin, Base):
    """A class with its join code and membership sets."""

    __tablename__ = "classes"
    __table_args__ = (Index("ix_classes_school_term", "school_id", "term"),)

    school_id: Mapped[str] = mapped_column(String(36), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    term: Mapped[str] = mapped_column(String(50), nullable=False)
    code: Mapped[str | None] = mapped_column(String(8), unique=True, nullable=True)
    teacher_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)
    student_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)
    guardian_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)


class Student(IdMixin, VersionMixin, TimestampMixin, Base):
    """A student; deleted once its class_ids list becomes empty."""

    __tablename__ = "students"

    school_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[str] = mapped_column(String(20), nullable=False, default="—")
    guardian_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)
    class_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)
