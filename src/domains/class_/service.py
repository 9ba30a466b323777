# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class service for teacher and parent class operations.

This module provides the ClassService class for:
- Creating a school and class for a teacher, with a join code
- Adding, removing and replacing the students of a class
- Linking class guardians to individual students
- Parents leaving a class
- Onboarding checks (teacher has a class, parent has joined one)

Teacher-only operations report a class the caller does not teach as not
found, the same as a class that does not exist.
"""

from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import MembershipSettings, get_settings
from src.core.exceptions import InvalidInputError
from src.core.principal import Role
from src.domains.class_code import ClassCodeRegistry
from src.domains.membership import (
    ClassNotFoundError,
    MembershipService,
    MembershipServiceError,
    ReconcileReport,
    RosterEntry,
    RosterReplacement,
    StudentNotFoundError,
)
from src.infrastructure.database.collections import Collection
from src.domains.user import UserService
from src.infrastructure.database.models import Class, School, Student
from src.models.class_ import ClassResponse, StudentResponse

logger = logging.getLogger(__name__)


class ClassServiceError(MembershipServiceError):
    """Base exception for class service errors."""

    pass


class InvalidClassDataError(ClassServiceError, InvalidInputError):
    """Raised when school or class details are invalid."""

    pass


class NotATeacherError(ClassServiceError, InvalidInputError):
    """Raised when a non-teacher tries to create a class."""

    pass


class GuardianNotInClassError(ClassServiceError, InvalidInputError):
    """Raised when linking a guardian who has not joined the class."""

    pass


class ClassService:
    """Service for class operations driven by teachers and parents.

    Attributes:
        db: Async database session.
        membership: Membership graph service.
        registry: Class code registry.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: MembershipSettings | None = None,
    ) -> None:
        """Initialize class service.

        Args:
            db: Async database session.
            settings: Membership settings; defaults to the application settings.
        """
        self.db = db
        self.settings = settings or get_settings().membership
        self.membership = MembershipService(db, self.settings)
        self.registry = ClassCodeRegistry(db, membership=self.membership)
        self.schools = Collection(db, School)
        self.classes = Collection(db, Class)
        self.students = Collection(db, Student)
        self.user_service = UserService(db)

    async def create_teacher_class(
        self,
        teacher_id: str,
        school_name: str,
        class_name: str,
        term: str,
    ) -> ClassResponse:
        """Create a school and a class taught by the teacher.

        Args:
            teacher_id: Teacher identity.
            school_name: Name of the new school.
            class_name: Name of the class.
            term: Term label, e.g. "2025-2026".

        Returns:
            The created class, including its join code.

        Raises:
            NotATeacherError: If the identity is not a teacher.
            InvalidClassDataError: If a name is missing or too long.
            ClassCodeExhaustedError: If no join code could be allocated.
        """
        school_name = self._clean_name(school_name, "School name")
        class_name = self._clean_name(class_name, "Class name")
        term = self._clean_name(term, "Term")

        if await self.user_service.get_role(teacher_id) is not Role.TEACHER:
            raise NotATeacherError("Only teachers can create classes")

        school = await self.schools.insert_one({"name": school_name})
        school_id = school.id

        cls = await self.registry.create_class({
            "school_id": school_id,
            "name": class_name,
            "term": term,
            "teacher_ids": [teacher_id],
            "student_ids": [],
            "guardian_ids": [],
        })

        await self.user_service.set_school(teacher_id, school_id)

        logger.info("Created class: %s (%s) by %s", cls.name, cls.id, teacher_id)
        return self._to_response(cls)

    async def get_class(self, teacher_id: str, class_id: str) -> ClassResponse:
        """Get a class the teacher teaches.

        Raises:
            ClassNotFoundError: If the class does not exist or is not theirs.
        """
        return self._to_response(await self._get_teacher_class(teacher_id, class_id))

    async def list_classes_for_teacher(self, teacher_id: str) -> list[ClassResponse]:
        """List the classes a teacher teaches."""
        classes = await self.classes.find({"teacher_ids": teacher_id})
        return [self._to_response(cls) for cls in classes]

    async def list_classes_for_guardian(self, guardian_id: str) -> list[ClassResponse]:
        """List the classes a parent has joined."""
        classes = await self.classes.find({"guardian_ids": guardian_id})
        return [self._to_response(cls) for cls in classes]

    async def list_students(self, teacher_id: str, class_id: str) -> list[StudentResponse]:
        """List the students of one of the teacher's classes, by name."""
        cls = await self._get_teacher_class(teacher_id, class_id)
        students = await self.students.find({"id": list(cls.student_ids or [])})
        students.sort(key=lambda s: s.name.lower())
        return [StudentResponse.model_validate(s) for s in students]

    async def add_students_by_name(
        self,
        teacher_id: str,
        class_id: str,
        names: Sequence[str],
        grade: str = "",
    ) -> list[str]:
        """Create students in one of the teacher's classes.

        Blank names are skipped.

        Returns:
            Identifiers of the created students.

        Raises:
            ClassNotFoundError: If the class does not exist or is not theirs.
            InvalidRosterError: If no names remain, too many are given or
                one is too long.
        """
        await self._get_teacher_class(teacher_id, class_id)
        entries = [RosterEntry(name=name, grade=grade) for name in names]
        return await self.membership.create_students(class_id, entries)

    async def add_student(self, teacher_id: str, class_id: str, student_id: str) -> bool:
        """Add an existing student of the school to one of the teacher's classes."""
        await self._get_teacher_class(teacher_id, class_id)
        return await self.membership.add_student_to_class(class_id, student_id)

    async def remove_student(self, teacher_id: str, class_id: str, student_id: str) -> bool:
        """Remove a student from one of the teacher's classes.

        Returns:
            True if the student had no classes left and was deleted.
        """
        await self._get_teacher_class(teacher_id, class_id)
        return await self.membership.remove_student_from_class(class_id, student_id)

    async def replace_roster(
        self,
        teacher_id: str,
        class_id: str,
        entries: Sequence[RosterEntry],
    ) -> RosterReplacement:
        """Replace the roster of one of the teacher's classes."""
        await self._get_teacher_class(teacher_id, class_id)
        return await self.membership.replace_class_roster(class_id, entries)

    async def reconcile(self, teacher_id: str, class_id: str) -> ReconcileReport:
        """Repair half-applied membership changes on one of the teacher's classes."""
        await self._get_teacher_class(teacher_id, class_id)
        return await self.membership.reconcile_class(class_id)

    async def link_guardian_to_student(
        self,
        teacher_id: str,
        class_id: str,
        student_id: str,
        guardian_id: str,
    ) -> bool:
        """Link a guardian of the class to one of its students.

        Raises:
            ClassNotFoundError: If the class does not exist or is not theirs.
            StudentNotFoundError: If the student is not in the class.
            GuardianNotInClassError: If the guardian has not joined the class.
        """
        cls = await self._get_teacher_class(teacher_id, class_id)
        if student_id not in (cls.student_ids or []):
            raise StudentNotFoundError(f"Student {student_id} not found in class")
        if guardian_id not in (cls.guardian_ids or []):
            raise GuardianNotInClassError("That parent has not joined this class")
        return await self.membership.link_guardian_to_student(student_id, guardian_id)

    async def unlink_guardian_from_student(
        self,
        teacher_id: str,
        class_id: str,
        student_id: str,
        guardian_id: str,
    ) -> bool:
        """Remove a guardian link from one of the class's students."""
        cls = await self._get_teacher_class(teacher_id, class_id)
        if student_id not in (cls.student_ids or []):
            raise StudentNotFoundError(f"Student {student_id} not found in class")
        return await self.membership.unlink_guardian_from_student(student_id, guardian_id)

    async def join_class(self, guardian_id: str, code: str) -> ClassResponse:
        """Join a class by code as a parent."""
        return self._to_response(await self.registry.join_by_code(guardian_id, code))

    async def leave_class(self, guardian_id: str, class_id: str) -> bool:
        """Remove a parent from a class.

        Returns:
            True if the parent was on the class.

        Raises:
            ClassNotFoundError: If the class does not exist.
        """
        class_id = (class_id or "").strip()
        if not class_id:
            raise InvalidClassDataError("Invalid class")
        return await self.membership.remove_guardian_from_class(class_id, guardian_id)

    async def teacher_has_class(self, teacher_id: str) -> bool:
        """Check whether a teacher teaches at least one class."""
        return await self.classes.count({"teacher_ids": teacher_id}) > 0

    async def parent_has_joined_class(self, guardian_id: str) -> bool:
        """Check whether a parent has joined at least one class."""
        return await self.classes.count({"guardian_ids": guardian_id}) > 0

    async def _get_teacher_class(self, teacher_id: str, class_id: str) -> Class:
        """Get a class only if the teacher teaches it."""
        cls = await self.classes.find_one({"id": class_id, "teacher_ids": teacher_id})
        if cls is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return cls

    def _clean_name(self, value: str | None, label: str) -> str:
        """Trim a required name and check its length."""
        value = (value or "").strip()
        if not value:
            raise InvalidClassDataError(f"{label} is required")
        if len(value) > self.settings.max_name_length:
            raise InvalidClassDataError(f"{label} is too long")
        return value

    def _to_response(self, cls: Class) -> ClassResponse:
        """Convert a class to its response model."""
        return ClassResponse(
            id=cls.id,
            school_id=cls.school_id,
            name=cls.name,
            term=cls.term,
            code=cls.code,
            teacher_ids=list(cls.teacher_ids or []),
            student_count=len(cls.student_ids or []),
            guardian_count=len(cls.guardian_ids or []),
            created_at=cls.created_at,
        )
