# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent-teacher interview slot service.

This module provides the InterviewSlotService class for:
- Opening and deleting time slots on a class (teacher)
- Booking a slot for a guardian without an account, and clearing it (teacher)
- Claiming and releasing a slot for one of the guardian's children (parent)
- Listing slots per class for the teacher and per joined class for a parent

A slot is claimed once it names a student and a guardian, either an account
or a manually entered name or email. Claims are written with the slot's
unclaimed state in the filter, so two guardians racing for one slot cannot
both win.
"""

import logging
from datetime import datetime
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SchoolConnectError,
)
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import (
    Class,
    InterviewSlot,
    School,
    Student,
    User,
)
from src.models.interview import (
    GuardianInterviewChild,
    GuardianInterviewClass,
    GuardianSlotResponse,
    InterviewSlotResponse,
    TeacherInterviewClass,
)
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

MAX_SLOTS_PER_REQUEST = 100

_CLEARED = {
    "student_id": None,
    "guardian_id": None,
    "manual_guardian_name": None,
    "manual_guardian_email": None,
}


class InterviewSlotServiceError(SchoolConnectError):
    """Base exception for interview slot service errors."""

    pass


class InterviewClassNotFoundError(InterviewSlotServiceError, NotFoundError):
    """Raised when a class is not found or not visible to the caller."""

    pass


class InterviewSlotNotFoundError(InterviewSlotServiceError, NotFoundError):
    """Raised when a slot is not found or not visible to the caller."""

    pass


class InvalidInterviewSlotError(InterviewSlotServiceError, InvalidInputError):
    """Raised when slot times or booking details are invalid."""

    pass


class SlotTakenError(InterviewSlotServiceError, ConflictError):
    """Raised when a slot, or the child, is already booked."""

    pass


class InterviewSlotService:
    """Service for parent-teacher interview slots.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.classes = Collection(db, Class)
        self.schools = Collection(db, School)
        self.students = Collection(db, Student)
        self.slots = Collection(db, InterviewSlot)
        self.users = Collection(db, User)

    # =========================================================================
    # Teacher operations
    # =========================================================================

    async def create_slots(
        self,
        teacher_id: str,
        class_id: str,
        times: Sequence[tuple[datetime, datetime]],
    ) -> int:
        """Open slots on a class.

        Args:
            teacher_id: Teacher of the class.
            class_id: Class the slots belong to.
            times: (start, end) pairs.

        Returns:
            Number of slots created.

        Raises:
            InterviewClassNotFoundError: If the class is not one of the teacher's.
            InvalidInterviewSlotError: If there are no slots, too many, or a
                slot ends before it starts.
        """
        if not times:
            raise InvalidInterviewSlotError("At least one slot is required")
        if len(times) > MAX_SLOTS_PER_REQUEST:
            raise InvalidInterviewSlotError(
                f"At most {MAX_SLOTS_PER_REQUEST} slots can be created at once"
            )

        normalized = []
        for start_at, end_at in times:
            start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
            if end_at <= start_at:
                raise InvalidInterviewSlotError("End time must be after start time")
            normalized.append((start_at, end_at))

        cls = await self._get_teacher_class(teacher_id, class_id)
        for start_at, end_at in normalized:
            await self.slots.insert_one({
                "class_id": cls.id,
                "start_at": start_at,
                "end_at": end_at,
            })

        logger.info("Created %d interview slots for class %s", len(normalized), class_id)
        return len(normalized)

    async def list_slots_for_class(
        self,
        teacher_id: str,
        class_id: str,
    ) -> list[InterviewSlotResponse]:
        """List a class's slots in start order, with who holds each one.

        Raises:
            InterviewClassNotFoundError: If the class is not one of the teacher's.
        """
        cls = await self._get_teacher_class(teacher_id, class_id)
        return await self._teacher_view(await self._class_slots(cls.id))

    async def list_slots_for_teacher(self, teacher_id: str) -> list[TeacherInterviewClass]:
        """List the slots of every class the teacher teaches."""
        classes = await self.classes.find(
            {"teacher_ids": teacher_id},
            order_by=[Class.name.asc()],
        )

        result = []
        for cls in classes:
            slots = await self._teacher_view(await self._class_slots(cls.id))
            result.append(TeacherInterviewClass(class_id=cls.id, class_name=cls.name, slots=slots))
        return result

    async def delete_slot(self, teacher_id: str, slot_id: str) -> None:
        """Delete a slot, booked or not.

        Raises:
            InterviewSlotNotFoundError: If the slot is not on one of the teacher's classes.
        """
        slot = await self._get_teacher_slot(teacher_id, slot_id)
        await self.slots.delete_one({"id": slot.id})
        logger.info("Deleted interview slot %s", slot_id)

    async def book_slot(
        self,
        teacher_id: str,
        slot_id: str,
        student_id: str,
        guardian_name: str,
        guardian_email: str | None = None,
    ) -> InterviewSlotResponse:
        """Book a slot for a guardian who has no account.

        Args:
            teacher_id: Teacher of the slot's class.
            slot_id: Slot to book.
            student_id: Student of the class the interview is about.
            guardian_name: Name to show on the slot.
            guardian_email: Optional address; the guardian can release the
                booking later by signing in with it.

        Returns:
            The booked slot.

        Raises:
            InterviewSlotNotFoundError: If the slot is not on one of the teacher's classes.
            InvalidInterviewSlotError: If the name is missing or the student is
                not in the class.
            SlotTakenError: If the slot is taken or the student already has a
                slot in the class.
        """
        guardian_name = (guardian_name or "").strip()
        if not guardian_name:
            raise InvalidInterviewSlotError("Guardian name is required")
        guardian_email = (guardian_email or "").strip() or None

        slot = await self._get_teacher_slot(teacher_id, slot_id)
        if slot.is_claimed:
            raise SlotTakenError("Slot is already taken")

        class_id = slot.class_id
        cls = await self.classes.find_one({"id": class_id, "student_ids": student_id})
        if cls is None:
            raise InvalidInterviewSlotError("Student is not in this class")
        if await self.slots.find_one({"class_id": class_id, "student_id": student_id}):
            raise SlotTakenError("This child already has a slot in this class")

        await self._claim(slot_id, {
            "student_id": student_id,
            "guardian_id": None,
            "manual_guardian_name": guardian_name,
            "manual_guardian_email": guardian_email,
        })
        logger.info("Booked interview slot %s for student %s", slot_id, student_id)

        booked = await self.slots.find_one({"id": slot_id})
        return (await self._teacher_view([booked]))[0]

    async def unbook_slot(self, teacher_id: str, slot_id: str) -> bool:
        """Clear whoever holds a slot.

        Returns:
            True if the slot was booked.

        Raises:
            InterviewSlotNotFoundError: If the slot is not on one of the teacher's classes.
        """
        slot = await self._get_teacher_slot(teacher_id, slot_id)
        result = await self.slots.update_one({"id": slot.id}, values=dict(_CLEARED))
        if result.modified:
            logger.info("Cleared booking of interview slot %s", slot_id)
        return bool(result.modified)

    # =========================================================================
    # Guardian operations
    # =========================================================================

    async def claim_slot(self, guardian_id: str, slot_id: str, student_id: str) -> None:
        """Claim a slot for one of the guardian's children.

        Raises:
            InterviewSlotNotFoundError: If the slot does not exist.
            InvalidInterviewSlotError: If the student is not the guardian's
                child in the slot's class, or the guardian has not joined it.
            SlotTakenError: If the slot is taken or the guardian already
                holds a slot for the child in this class.
        """
        slot = await self.slots.find_one({"id": slot_id})
        if slot is None:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")
        if slot.is_claimed:
            raise SlotTakenError("Slot is already taken")
        class_id = slot.class_id

        student = await self.students.find_one({"id": student_id, "guardian_ids": guardian_id})
        if student is None:
            raise InvalidInterviewSlotError("Student is not linked to you")
        if class_id not in (student.class_ids or []):
            raise InvalidInterviewSlotError("Student is not in this class")
        if await self.classes.find_one({"id": class_id, "guardian_ids": guardian_id}) is None:
            raise InvalidInterviewSlotError("You have not joined this class")

        existing = await self.slots.find_one({
            "class_id": class_id,
            "student_id": student_id,
            "guardian_id": guardian_id,
        })
        if existing is not None:
            raise SlotTakenError("You already have a slot for this child in this class")

        await self._claim(slot_id, {
            "student_id": student_id,
            "guardian_id": guardian_id,
            "manual_guardian_name": None,
            "manual_guardian_email": None,
        })
        logger.info(
            "Guardian %s claimed interview slot %s for student %s",
            guardian_id,
            slot_id,
            student_id,
        )

    async def unclaim_slot(self, guardian_id: str, slot_id: str) -> None:
        """Release a slot the guardian holds.

        A slot the teacher booked under the guardian's email address counts
        as theirs.

        Raises:
            InterviewSlotNotFoundError: If the slot does not exist or is not theirs.
        """
        slot = await self.slots.find_one({"id": slot_id})
        if slot is None or not slot.is_claimed:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")

        email = await self._email_of(guardian_id)
        if slot.guardian_id == guardian_id:
            filter = {"id": slot_id, "guardian_id": guardian_id}
        elif self._same_email(slot.manual_guardian_email, email):
            filter = {"id": slot_id, "manual_guardian_email": slot.manual_guardian_email}
        else:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")

        result = await self.slots.update_one(filter, values=dict(_CLEARED))
        if result.matched == 0:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")
        logger.info("Guardian %s released interview slot %s", guardian_id, slot_id)

    async def get_interview_data_for_guardian(
        self,
        guardian_id: str,
    ) -> list[GuardianInterviewClass]:
        """List the slots of each joined class where the guardian has a child.

        Other guardians' bookings only show as taken.
        """
        email = await self._email_of(guardian_id)
        classes = await self.classes.find(
            {"guardian_ids": guardian_id},
            order_by=[Class.name.asc()],
        )

        result = []
        for cls in classes:
            children = await self.students.find(
                {"id": list(cls.student_ids or []), "guardian_ids": guardian_id},
                order_by=[Student.name.asc()],
            )
            if not children:
                continue

            slots = await self._class_slots(cls.id)
            mine = {
                slot.id
                for slot in slots
                if slot.is_claimed
                and (
                    slot.guardian_id == guardian_id
                    or self._same_email(slot.manual_guardian_email, email)
                )
            }
            claimed_by_child = {
                slot.student_id: slot.id for slot in slots if slot.id in mine
            }
            school = await self.schools.find_one({"id": cls.school_id})

            result.append(GuardianInterviewClass(
                class_id=cls.id,
                class_name=cls.name,
                school_name=school.name if school else None,
                children=[
                    GuardianInterviewChild(
                        student_id=child.id,
                        name=child.name,
                        claimed_slot_id=claimed_by_child.get(child.id),
                    )
                    for child in children
                ],
                slots=[
                    GuardianSlotResponse(
                        id=slot.id,
                        start_at=ensure_utc(slot.start_at),
                        end_at=ensure_utc(slot.end_at),
                        is_claimed=slot.is_claimed,
                        claimed_by_me=slot.id in mine,
                    )
                    for slot in slots
                ],
            ))
        return result

    # =========================================================================
    # Membership cascades
    # =========================================================================

    async def release_student(self, class_id: str, student_id: str) -> int:
        """Clear the slots a student holds in a class they have left."""
        held = await self.slots.find({"class_id": class_id, "student_id": student_id})
        return await self._release([slot.id for slot in held], f"student {student_id}")

    async def release_guardian(self, class_id: str, guardian_id: str) -> int:
        """Clear the slots a guardian claimed in a class they have left."""
        held = await self.slots.find({"class_id": class_id, "guardian_id": guardian_id})
        return await self._release([slot.id for slot in held], f"guardian {guardian_id}")

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_teacher_class(self, teacher_id: str, class_id: str) -> Class:
        cls = await self.classes.find_one({"id": class_id, "teacher_ids": teacher_id})
        if cls is None:
            raise InterviewClassNotFoundError(f"Class {class_id} not found")
        return cls

    async def _get_teacher_slot(self, teacher_id: str, slot_id: str) -> InterviewSlot:
        """Get a slot on one of the teacher's classes."""
        slot = await self.slots.find_one({"id": slot_id})
        if slot is None:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")
        if await self.classes.find_one({"id": slot.class_id, "teacher_ids": teacher_id}) is None:
            raise InterviewSlotNotFoundError(f"Interview slot {slot_id} not found")
        return slot

    async def _class_slots(self, class_id: str) -> list[InterviewSlot]:
        return await self.slots.find(
            {"class_id": class_id},
            order_by=[InterviewSlot.start_at.asc()],
        )

    async def _claim(self, slot_id: str, values: dict) -> None:
        """Write a booking only if the slot is still free."""
        result = await self.slots.update_one(
            {"id": slot_id, "student_id": None},
            values=values,
        )
        if result.matched == 0:
            raise SlotTakenError("Slot is already taken")

    async def _release(self, slot_ids: list[str], holder: str) -> int:
        released = 0
        for slot_id in slot_ids:
            result = await self.slots.update_one({"id": slot_id}, values=dict(_CLEARED))
            released += result.modified
        if released:
            logger.info("Released %d interview slots held by %s", released, holder)
        return released

    async def _email_of(self, subject_id: str) -> str | None:
        user = await self.users.find_one({"subject_id": subject_id})
        return user.email if user else None

    @staticmethod
    def _same_email(stored: str | None, email: str | None) -> bool:
        if not stored or not email:
            return False
        return stored.strip().casefold() == email.strip().casefold()

    async def _teacher_view(self, slots: list[InterviewSlot]) -> list[InterviewSlotResponse]:
        """Attach student and guardian names to claimed slots."""
        claimed = [slot for slot in slots if slot.is_claimed]
        student_ids = sorted({slot.student_id for slot in claimed})
        guardian_ids = sorted({slot.guardian_id for slot in claimed if slot.guardian_id})

        names = {}
        if student_ids:
            names = {s.id: s.name for s in await self.students.find({"id": student_ids})}
        guardians = {}
        if guardian_ids:
            guardians = {
                u.subject_id: u for u in await self.users.find({"subject_id": guardian_ids})
            }

        views = []
        for slot in slots:
            view = InterviewSlotResponse(
                id=slot.id,
                class_id=slot.class_id,
                start_at=ensure_utc(slot.start_at),
                end_at=ensure_utc(slot.end_at),
                is_claimed=slot.is_claimed,
            )
            if slot.is_claimed:
                view.student_id = slot.student_id
                view.student_name = names.get(slot.student_id)
                if slot.guardian_id:
                    user = guardians.get(slot.guardian_id)
                    view.guardian_id = slot.guardian_id
                    view.guardian_name = user.name if user else None
                    view.guardian_email = user.email if user else None
                else:
                    view.guardian_name = slot.manual_guardian_name
                    view.guardian_email = slot.manual_guardian_email
            views.append(view)
        return views
