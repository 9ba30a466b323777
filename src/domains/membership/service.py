# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Membership graph service.

Classes and students hold each other's identifiers in separate records:

    student.id in class.student_ids  <=>  class.id in student.class_ids

No write spans both records, so every operation here updates one side,
then the other, and is safe to run again. The class record is the commit
point: an add is committed once the class lists the student, a removal
once it no longer does. reconcile_class() finishes whatever a failed call
left half-applied using that rule, and runs automatically when a two-sided
write fails part-way.

A student whose class_ids becomes empty is an orphan and is deleted. Class
references are removed before the student record goes; records that
belong to the student (report cards) are removed after. Interview slots
held in a class are released when the student leaves it.

Guardians are linked to a class through class.guardian_ids and, separately,
to individual students through student.guardian_ids. The two links are
maintained independently.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import MembershipSettings, get_settings
from src.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SchoolConnectError,
    UnavailableError,
)
from src.core.principal import Role
from src.domains.interview_slot.service import InterviewSlotService
from src.domains.permission_slip.service import PermissionSlipService
from src.domains.user.service import UserService
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import (
    Class,
    Conversation,
    ReportCard,
    Student,
    User,
)

logger = logging.getLogger(__name__)

DEFAULT_GRADE = "—"


class MembershipServiceError(SchoolConnectError):
    """Base exception for membership service errors."""

    pass


class ClassNotFoundError(MembershipServiceError, NotFoundError):
    """Raised when a class is not found or not visible to the caller."""

    pass


class StudentNotFoundError(MembershipServiceError, NotFoundError):
    """Raised when a student is not found."""

    pass


class SchoolMismatchError(MembershipServiceError, InvalidInputError):
    """Raised when a student and class belong to different schools."""

    pass


class GuardianRoleError(MembershipServiceError, InvalidInputError):
    """Raised when an identity added as guardian is not a parent."""

    pass


class InvalidRosterError(MembershipServiceError, InvalidInputError):
    """Raised when a roster entry is invalid."""

    pass


@dataclass(frozen=True)
class RosterEntry:
    """One student in a replacement roster.

    Attributes:
        name: Student name.
        grade: Grade label; blank means the default placeholder.
    """

    name: str
    grade: str = ""


@dataclass
class RosterReplacement:
    """Outcome of replace_class_roster.

    Attributes:
        student_ids: The class's student identifiers, in roster order.
        created: Students created by this run.
        removed: Students taken off the class by this run.
        deleted: Removed students that were deleted as orphans.
    """

    student_ids: list[str] = field(default_factory=list)
    created: int = 0
    removed: int = 0
    deleted: int = 0


@dataclass
class ReconcileReport:
    """Outcome of reconcile_class.

    Attributes:
        completed: Students whose missing back-reference was added.
        dropped: Student references removed from the class.
        detached: Students whose stray class reference was removed.
        deleted: Detached students deleted as orphans.
        guardians_dropped: Guardian references without a parent user.
    """

    completed: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    detached: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    guardians_dropped: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """Check whether reconciliation modified anything."""
        return bool(
            self.completed or self.dropped or self.detached or self.guardians_dropped
        )


class MembershipService:
    """Service keeping class, student and guardian references reciprocal.

    Attributes:
        db: Async database session.
        settings: Membership settings (retry bound, size limits).
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: MembershipSettings | None = None,
    ) -> None:
        """Initialize the membership service.

        Args:
            db: Async database session.
            settings: Membership settings; defaults to the application settings.
        """
        self.db = db
        self.settings = settings or get_settings().membership
        retries = self.settings.max_retries
        self.classes = Collection(db, Class, max_retries=retries)
        self.students = Collection(db, Student, max_retries=retries)
        self.users = Collection(db, User, max_retries=retries)
        self.report_cards = Collection(db, ReportCard, max_retries=retries)
        self.conversations = Collection(db, Conversation, max_retries=retries)
        self.permission_slips = PermissionSlipService(db)
        self.interview_slots = InterviewSlotService(db)
        self.user_service = UserService(db)

    # =========================================================================
    # Students
    # =========================================================================

    async def add_student_to_class(self, class_id: str, student_id: str) -> bool:
        """Add a student to a class.

        Idempotent: adding an existing member changes nothing.

        Args:
            class_id: Class identifier.
            student_id: Student identifier.

        Returns:
            True if either side was modified.

        Raises:
            ClassNotFoundError: If the class does not exist.
            StudentNotFoundError: If the student does not exist.
            SchoolMismatchError: If they belong to different schools.
        """
        cls = await self._get_class(class_id)
        student = await self._get_student(student_id)
        if cls.school_id != student.school_id:
            raise SchoolMismatchError(
                f"Student {student_id} and class {class_id} belong to different schools"
            )

        # Student side first so the student is never an orphan while joining.
        student_result = await self.students.update_one(
            {"id": student_id},
            add_to_set={"class_ids": [class_id]},
        )
        if student_result.matched == 0:
            raise StudentNotFoundError(f"Student {student_id} not found")

        try:
            class_result = await self.classes.update_one(
                {"id": class_id},
                add_to_set={"student_ids": [student_id]},
            )
        except (ConflictError, UnavailableError):
            await self._reconcile_after_failure(class_id)
            raise
        if class_result.matched == 0:
            await self._detach_student(student_id, class_id)
            raise ClassNotFoundError(f"Class {class_id} not found")

        changed = bool(student_result.modified or class_result.modified)
        if changed:
            logger.info("Added student %s to class %s", student_id, class_id)
        return changed

    async def remove_student_from_class(self, class_id: str, student_id: str) -> bool:
        """Remove a student from a class.

        Removing a non-member is a no-op. If the student has no classes
        left, the student record is deleted.

        Args:
            class_id: Class identifier.
            student_id: Student identifier.

        Returns:
            True if the student record was deleted.

        Raises:
            ClassNotFoundError: If the class does not exist.
        """
        await self._get_class(class_id)

        try:
            class_result = await self.classes.update_one(
                {"id": class_id},
                pull={"student_ids": [student_id]},
            )
            deleted = await self._detach_student(student_id, class_id)
        except (ConflictError, UnavailableError):
            await self._reconcile_after_failure(class_id)
            raise

        if class_result.modified or deleted:
            logger.info(
                "Removed student %s from class %s%s",
                student_id,
                class_id,
                " (deleted orphan)" if deleted else "",
            )
        return deleted

    async def create_students(
        self,
        class_id: str,
        entries: Sequence[RosterEntry],
    ) -> list[str]:
        """Create new students directly in a class.

        Each student is inserted already pointing at the class, then the
        class is extended with the new identifiers in one update.

        Returns:
            Identifiers of the created students, in input order.

        Raises:
            ClassNotFoundError: If the class does not exist.
            InvalidRosterError: If an entry is invalid.
        """
        entries = self._validate_entries(entries)
        cls = await self._get_class(class_id)
        school_id = cls.school_id

        try:
            created = await self._insert_students(school_id, class_id, entries)
            result = await self.classes.update_one(
                {"id": class_id},
                add_to_set={"student_ids": created},
            )
        except (ConflictError, UnavailableError):
            await self._reconcile_after_failure(class_id)
            raise
        if result.matched == 0:
            for student_id in created:
                await self._detach_student(student_id, class_id)
            raise ClassNotFoundError(f"Class {class_id} not found")

        logger.info("Created %d students in class %s", len(created), class_id)
        return created

    async def replace_class_roster(
        self,
        class_id: str,
        entries: Sequence[RosterEntry],
    ) -> RosterReplacement:
        """Replace a class's students with a new roster.

        Students whose only class is this one and who match an entry by
        (name, grade) are kept; unmatched entries are created; the class is
        set to exactly the resulting list; every other member is detached,
        and deleted if that leaves it with no classes. Because matching
        reads the current reciprocal state, running it again with the same
        entries changes nothing, and a run that failed part-way converges
        when repeated.

        Args:
            class_id: Class identifier.
            entries: The new roster.

        Returns:
            RosterReplacement describing the run.

        Raises:
            ClassNotFoundError: If the class does not exist.
            InvalidRosterError: If an entry is invalid.
        """
        entries = self._validate_entries(entries, allow_empty=True)
        cls = await self._get_class(class_id)
        school_id = cls.school_id

        members = await self._current_members(class_id, school_id, cls.student_ids or [])
        sole = [s for s in members if set(s.class_ids or []) <= {class_id}]
        available: dict[tuple[str, str], list[str]] = {}
        for student in sole:
            available.setdefault((student.name, student.grade), []).append(student.id)

        slots: list[str | None] = []
        missing: list[RosterEntry] = []
        for entry in entries:
            matches = available.get((entry.name, entry.grade))
            if matches:
                slots.append(matches.pop(0))
            else:
                slots.append(None)
                missing.append(entry)

        try:
            outcome = await self._write_roster(
                class_id,
                school_id,
                [s.id for s in members],
                slots,
                missing,
            )
        except (ConflictError, UnavailableError):
            await self._reconcile_after_failure(class_id)
            raise

        logger.info(
            "Replaced roster of class %s: %d students (%d created, %d removed, %d deleted)",
            class_id,
            len(outcome.student_ids),
            outcome.created,
            outcome.removed,
            outcome.deleted,
        )
        return outcome

    async def _write_roster(
        self,
        class_id: str,
        school_id: str,
        member_ids: list[str],
        slots: list[str | None],
        missing: list[RosterEntry],
    ) -> RosterReplacement:
        """Create missing students, set the class list, then fix back-references."""
        created = await self._insert_students(school_id, class_id, missing)
        fresh = iter(created)
        student_ids = [slot if slot is not None else next(fresh) for slot in slots]

        result = await self.classes.update_one(
            {"id": class_id},
            values={"student_ids": student_ids},
        )
        if result.matched == 0:
            for student_id in created:
                await self._detach_student(student_id, class_id)
            raise ClassNotFoundError(f"Class {class_id} not found")

        outcome = RosterReplacement(student_ids=student_ids, created=len(created))

        keep = set(student_ids)
        for member_id in member_ids:
            if member_id in keep:
                continue
            outcome.removed += 1
            if await self._detach_student(member_id, class_id):
                outcome.deleted += 1

        for student_id in student_ids:
            await self.students.update_one(
                {"id": student_id},
                add_to_set={"class_ids": [class_id]},
            )
        return outcome

    # =========================================================================
    # Guardians
    # =========================================================================

    async def add_guardian_to_class(self, class_id: str, guardian_id: str) -> bool:
        """Add a parent to a class's guardians.

        Idempotent. The guardian also gets an unsent slip for every
        slip-gated event of the class.

        Returns:
            True if the guardian was newly added.

        Raises:
            ClassNotFoundError: If the class does not exist.
            GuardianRoleError: If the identity is not a parent.
        """
        await self._get_class(class_id)
        await self._require_parent(guardian_id)

        result = await self.classes.update_one(
            {"id": class_id},
            add_to_set={"guardian_ids": [guardian_id]},
        )
        if result.matched == 0:
            raise ClassNotFoundError(f"Class {class_id} not found")

        await self.permission_slips.create_slips_for_guardian(class_id, guardian_id)

        if result.modified:
            logger.info("Added guardian %s to class %s", guardian_id, class_id)
        return bool(result.modified)

    async def remove_guardian_from_class(self, class_id: str, guardian_id: str) -> bool:
        """Remove a guardian from a class.

        Removing a non-member is a no-op. The guardian's unsigned slips for
        the class are deleted and their interview slots released.

        Returns:
            True if the guardian was on the class.

        Raises:
            ClassNotFoundError: If the class does not exist.
        """
        await self._get_class(class_id)

        result = await self.classes.update_one(
            {"id": class_id},
            pull={"guardian_ids": [guardian_id]},
        )
        await self.permission_slips.delete_unsigned_slips(class_id, guardian_id)
        await self.interview_slots.release_guardian(class_id, guardian_id)

        if result.modified:
            logger.info("Removed guardian %s from class %s", guardian_id, class_id)
        return bool(result.modified)

    async def link_guardian_to_student(self, student_id: str, guardian_id: str) -> bool:
        """Add a guardian to a student's guardian set.

        Returns:
            True if the link was newly added.

        Raises:
            StudentNotFoundError: If the student does not exist.
            GuardianRoleError: If the identity is not a parent.
        """
        await self._require_parent(guardian_id)

        result = await self.students.update_one(
            {"id": student_id},
            add_to_set={"guardian_ids": [guardian_id]},
        )
        if result.matched == 0:
            raise StudentNotFoundError(f"Student {student_id} not found")

        if result.modified:
            logger.info("Linked guardian %s to student %s", guardian_id, student_id)
        return bool(result.modified)

    async def unlink_guardian_from_student(self, student_id: str, guardian_id: str) -> bool:
        """Remove a guardian from a student's guardian set.

        Returns:
            True if the link existed.

        Raises:
            StudentNotFoundError: If the student does not exist.
        """
        result = await self.students.update_one(
            {"id": student_id},
            pull={"guardian_ids": [guardian_id]},
        )
        if result.matched == 0:
            raise StudentNotFoundError(f"Student {student_id} not found")

        if result.modified:
            logger.info("Unlinked guardian %s from student %s", guardian_id, student_id)
        return bool(result.modified)

    # =========================================================================
    # Reconciliation
    # =========================================================================

    async def reconcile_class(self, class_id: str) -> ReconcileReport:
        """Complete any half-applied membership change on a class.

        The class record is authoritative: listed students that exist get
        their back-reference; listed students that do not exist (or belong
        to another school) are dropped; students pointing at the class
        without being listed lose the reference and are deleted if that
        orphans them. Guardian references without a parent user are
        dropped.

        Returns:
            ReconcileReport listing what was repaired.

        Raises:
            ClassNotFoundError: If the class does not exist.
        """
        cls = await self._get_class(class_id)
        school_id = cls.school_id
        listed = list(cls.student_ids or [])
        guardian_ids = list(cls.guardian_ids or [])
        report = ReconcileReport()

        existing = {
            s.id: s for s in await self.students.find({"id": listed, "school_id": school_id})
        }
        report.dropped = [student_id for student_id in listed if student_id not in existing]
        if report.dropped:
            await self.classes.update_one(
                {"id": class_id},
                pull={"student_ids": report.dropped},
            )

        for student_id, student in existing.items():
            if class_id not in (student.class_ids or []):
                result = await self.students.update_one(
                    {"id": student_id},
                    add_to_set={"class_ids": [class_id]},
                )
                if result.modified:
                    report.completed.append(student_id)

        strays = await self.students.find(
            {"class_ids": class_id},
            where=lambda s: s.id not in existing,
        )
        for stray_id in [s.id for s in strays]:
            report.detached.append(stray_id)
            if await self._detach_student(stray_id, class_id):
                report.deleted.append(stray_id)

        parents = {
            u.subject_id
            for u in await self.users.find({"subject_id": guardian_ids, "role": Role.PARENT.value})
        }
        report.guardians_dropped = [g for g in guardian_ids if g not in parents]
        if report.guardians_dropped:
            await self.classes.update_one(
                {"id": class_id},
                pull={"guardian_ids": report.guardians_dropped},
            )

        if report.changed:
            logger.info(
                "Reconciled class %s: completed=%d dropped=%d detached=%d deleted=%d guardians_dropped=%d",
                class_id,
                len(report.completed),
                len(report.dropped),
                len(report.detached),
                len(report.deleted),
                len(report.guardians_dropped),
            )
        return report

    async def _reconcile_after_failure(self, class_id: str) -> None:
        """Repair a class after a two-sided write failed part-way.

        The caller re-raises the original error. If the repair fails too it
        is only logged; repeating the call or reconcile_class() completes it.
        """
        try:
            report = await self.reconcile_class(class_id)
        except (ConflictError, UnavailableError, NotFoundError) as e:
            logger.error(
                "Could not reconcile class %s after a failed write: %s",
                class_id,
                e.message,
            )
            return
        if report.changed:
            logger.warning("Repaired class %s after a failed write", class_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_class(self, class_id: str) -> Class:
        """Get a class by ID or raise ClassNotFoundError."""
        cls = await self.classes.find_one({"id": class_id})
        if cls is None:
            raise ClassNotFoundError(f"Class {class_id} not found")
        return cls

    async def _get_student(self, student_id: str) -> Student:
        """Get a student by ID or raise StudentNotFoundError."""
        student = await self.students.find_one({"id": student_id})
        if student is None:
            raise StudentNotFoundError(f"Student {student_id} not found")
        return student

    async def _require_parent(self, guardian_id: str) -> None:
        """Check that an identity has a user record with the parent role."""
        role = await self.user_service.get_role(guardian_id)
        if role is None:
            raise GuardianRoleError(f"No role recorded for {guardian_id}")
        if role is not Role.PARENT:
            raise GuardianRoleError(
                f"Only parents can be class guardians (role: {role.value})",
                {"subject_id": guardian_id, "role": role.value},
            )

    async def _current_members(
        self,
        class_id: str,
        school_id: str,
        listed: Iterable[str],
    ) -> list[Student]:
        """Students referenced from either side of the class relation."""
        by_id = {
            s.id: s
            for s in await self.students.find({"id": list(listed), "school_id": school_id})
        }
        for student in await self.students.find({"class_ids": class_id, "school_id": school_id}):
            by_id.setdefault(student.id, student)
        return list(by_id.values())

    async def _insert_students(
        self,
        school_id: str,
        class_id: str,
        entries: Sequence[RosterEntry],
    ) -> list[str]:
        """Insert students that already reference the class."""
        created: list[str] = []
        for entry in entries:
            student = await self.students.insert_one({
                "school_id": school_id,
                "name": entry.name,
                "grade": entry.grade,
                "guardian_ids": [],
                "class_ids": [class_id],
            })
            created.append(student.id)
        return created

    async def _detach_student(self, student_id: str, class_id: str) -> bool:
        """Drop a class from a student and delete the student if orphaned.

        Interview slots the student held in the class are released.

        Returns:
            True if the student record was deleted.
        """
        await self.students.update_one(
            {"id": student_id},
            pull={"class_ids": [class_id]},
        )
        await self.interview_slots.release_student(class_id, student_id)
        return await self._delete_orphan(student_id)

    async def _delete_orphan(self, student_id: str) -> bool:
        """Delete a student with no classes, cascading its references.

        A class listing the student is only cleared if the student does not
        reference it at that moment, and the delete only happens if
        class_ids is still empty when it runs. A student that joined a class
        in between is kept and listed again on every class it references.
        """
        student = await self.students.find_one({"id": student_id})
        if student is None or student.class_ids:
            return False

        referencing = await self.classes.find(
            {"student_ids": student_id, "school_id": student.school_id}
        )
        for class_id in [c.id for c in referencing]:
            current = await self.students.find_one({"id": student_id})
            if current is None:
                return False
            if class_id in (current.class_ids or []):
                continue
            await self.classes.update_one(
                {"id": class_id},
                pull={"student_ids": [student_id]},
            )

        deleted = await self.students.delete_one(
            {"id": student_id},
            where=lambda s: not s.class_ids,
        )
        if not deleted:
            await self._relist_student(student_id)
            return False

        cards = await self.report_cards.delete_many({"student_id": student_id})
        threads = await self.conversations.find({"student_id": student_id})
        for conversation_id in [c.id for c in threads]:
            await self.conversations.update_one(
                {"id": conversation_id},
                values={"student_id": None},
            )

        logger.info(
            "Deleted orphaned student %s (%d report cards, %d conversations unlinked)",
            student_id,
            cards,
            len(threads),
        )
        return True

    async def _relist_student(self, student_id: str) -> None:
        """Add a kept student back to every class it references."""
        student = await self.students.find_one({"id": student_id})
        if student is None:
            return
        for class_id in list(student.class_ids or []):
            result = await self.classes.update_one(
                {"id": class_id},
                add_to_set={"student_ids": [student_id]},
            )
            if result.modified:
                logger.warning(
                    "Student %s joined class %s during orphan cleanup, listing it again",
                    student_id,
                    class_id,
                )

    def _validate_entries(
        self,
        entries: Sequence[RosterEntry],
        allow_empty: bool = False,
    ) -> list[RosterEntry]:
        """Trim and validate roster entries."""
        cleaned: list[RosterEntry] = []
        for entry in entries:
            name = (entry.name or "").strip()
            grade = (entry.grade or "").strip() or DEFAULT_GRADE
            if not name:
                continue
            if len(name) > self.settings.max_name_length:
                raise InvalidRosterError(
                    f"Student names must be at most {self.settings.max_name_length} characters",
                    {"name": name[:20]},
                )
            cleaned.append(RosterEntry(name=name, grade=grade))

        if not cleaned and not allow_empty:
            raise InvalidRosterError("Please enter at least one student name")
        if len(cleaned) > self.settings.max_roster_size:
            raise InvalidRosterError(
                f"Maximum {self.settings.max_roster_size} students at a time"
            )
        return cleaned
