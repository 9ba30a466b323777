# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for interview slots."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.interview_slot import (
    MAX_SLOTS_PER_REQUEST,
    InterviewClassNotFoundError,
    InterviewSlotNotFoundError,
    InterviewSlotService,
    InvalidInterviewSlotError,
    SlotTakenError,
)
from src.domains.membership import MembershipService
from src.domains.user import UserService
from src.models.class_ import ClassResponse

START = datetime(2025, 11, 12, 15, 0, tzinfo=timezone.utc)


def _times(count: int) -> list[tuple[datetime, datetime]]:
    return [
        (START + timedelta(minutes=15 * i), START + timedelta(minutes=15 * (i + 1)))
        for i in range(count)
    ]


@pytest.fixture
def interviews(db: AsyncSession) -> InterviewSlotService:
    return InterviewSlotService(db)


@pytest_asyncio.fixture
async def family(db, classroom: ClassResponse, parent: str, add_students) -> dict:
    """The default parent joined to the class and linked to one of two students."""
    membership = MembershipService(db)
    ada, grace = await add_students(classroom.id, "Ada", "Grace")
    await membership.add_guardian_to_class(classroom.id, parent)
    await membership.link_guardian_to_student(ada, parent)
    return {"class_id": classroom.id, "child": ada, "other": grace}


async def _slot_ids(interviews: InterviewSlotService, teacher: str, class_id: str) -> list[str]:
    return [s.id for s in await interviews.list_slots_for_class(teacher, class_id)]


class TestCreate:
    """Tests for opening and deleting slots."""

    @pytest.mark.asyncio
    async def test_slots_listed_in_start_order(self, interviews, classroom, teacher) -> None:
        times = list(reversed(_times(3)))

        assert await interviews.create_slots(teacher, classroom.id, times) == 3

        listed = await interviews.list_slots_for_class(teacher, classroom.id)
        assert [s.start_at for s in listed] == [start for start, _ in _times(3)]
        assert not any(s.is_claimed for s in listed)

    @pytest.mark.asyncio
    async def test_limits(self, interviews, classroom, teacher) -> None:
        with pytest.raises(InvalidInterviewSlotError):
            await interviews.create_slots(teacher, classroom.id, [])
        with pytest.raises(InvalidInterviewSlotError):
            await interviews.create_slots(teacher, classroom.id, _times(MAX_SLOTS_PER_REQUEST + 1))
        with pytest.raises(InvalidInterviewSlotError, match="after start"):
            await interviews.create_slots(teacher, classroom.id, [(START, START)])

        assert await interviews.list_slots_for_class(teacher, classroom.id) == []

    @pytest.mark.asyncio
    async def test_other_teacher(self, interviews, classroom, teacher, other_teacher) -> None:
        with pytest.raises(InterviewClassNotFoundError):
            await interviews.create_slots(other_teacher, classroom.id, _times(1))

        await interviews.create_slots(teacher, classroom.id, _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, classroom.id)

        with pytest.raises(InterviewClassNotFoundError):
            await interviews.list_slots_for_class(other_teacher, classroom.id)
        with pytest.raises(InterviewSlotNotFoundError):
            await interviews.delete_slot(other_teacher, slot_id)

        await interviews.delete_slot(teacher, slot_id)
        assert await _slot_ids(interviews, teacher, classroom.id) == []

    @pytest.mark.asyncio
    async def test_list_for_teacher(self, interviews, classroom, teacher, make_class) -> None:
        second = await make_class(classroom.school_id, name="Art", teacher_ids=[teacher])
        await interviews.create_slots(teacher, classroom.id, _times(2))

        listed = await interviews.list_slots_for_teacher(teacher)

        assert [(c.class_name, len(c.slots)) for c in listed] == [("Art", 0), ("Room 4", 2)]
        assert listed[0].class_id == second


class TestTeacherBooking:
    """Tests for manual bookings."""

    @pytest.mark.asyncio
    async def test_book_and_unbook(self, interviews, family, teacher) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(2))
        first, second = await _slot_ids(interviews, teacher, family["class_id"])

        booked = await interviews.book_slot(
            teacher, first, family["other"], " Mr. Hopper ", "hopper@example.com"
        )
        assert booked.is_claimed
        assert booked.student_name == "Grace"
        assert booked.guardian_name == "Mr. Hopper"
        assert booked.guardian_id is None

        with pytest.raises(SlotTakenError):
            await interviews.book_slot(teacher, first, family["child"], "Sam")
        with pytest.raises(SlotTakenError, match="already has a slot"):
            await interviews.book_slot(teacher, second, family["other"], "Mr. Hopper")

        assert await interviews.unbook_slot(teacher, first) is True
        assert await interviews.unbook_slot(teacher, first) is False
        assert not (await interviews.list_slots_for_class(teacher, family["class_id"]))[0].is_claimed

    @pytest.mark.asyncio
    async def test_book_validation(self, interviews, family, teacher) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, family["class_id"])

        with pytest.raises(InvalidInterviewSlotError, match="name is required"):
            await interviews.book_slot(teacher, slot_id, family["child"], "  ")
        with pytest.raises(InvalidInterviewSlotError, match="not in this class"):
            await interviews.book_slot(teacher, slot_id, "missing-student", "Sam")


class TestGuardianClaims:
    """Tests for guardian claims."""

    @pytest.mark.asyncio
    async def test_claim_and_view(self, interviews, family, teacher, parent) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(2))
        first, second = await _slot_ids(interviews, teacher, family["class_id"])

        await interviews.claim_slot(parent, first, family["child"])

        (view,) = await interviews.get_interview_data_for_guardian(parent)
        assert view.school_name == "Maple Elementary"
        assert [(c.name, c.claimed_slot_id) for c in view.children] == [("Ada", first)]
        assert [(s.id, s.is_claimed, s.claimed_by_me) for s in view.slots] == [
            (first, True, True),
            (second, False, False),
        ]

        (teacher_view, _) = await interviews.list_slots_for_class(teacher, family["class_id"])
        assert teacher_view.guardian_name == "Sam Wilson"
        assert teacher_view.student_name == "Ada"

        with pytest.raises(SlotTakenError):
            await interviews.claim_slot(parent, second, family["child"])

    @pytest.mark.asyncio
    async def test_claim_prerequisites(
        self, db, interviews, family, teacher, parent, other_parent
    ) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, family["class_id"])

        with pytest.raises(InvalidInterviewSlotError, match="not linked"):
            await interviews.claim_slot(parent, slot_id, family["other"])
        with pytest.raises(InvalidInterviewSlotError, match="not linked"):
            await interviews.claim_slot(other_parent, slot_id, family["child"])

        # Linked but never joined the class.
        await MembershipService(db).link_guardian_to_student(family["child"], other_parent)
        with pytest.raises(InvalidInterviewSlotError, match="not joined"):
            await interviews.claim_slot(other_parent, slot_id, family["child"])

        with pytest.raises(InterviewSlotNotFoundError):
            await interviews.claim_slot(parent, "missing-slot", family["child"])

    @pytest.mark.asyncio
    async def test_taken_slot(self, db, interviews, family, teacher, parent, other_parent) -> None:
        membership = MembershipService(db)
        await membership.add_guardian_to_class(family["class_id"], other_parent)
        await membership.link_guardian_to_student(family["other"], other_parent)
        await interviews.create_slots(teacher, family["class_id"], _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, family["class_id"])

        await interviews.claim_slot(parent, slot_id, family["child"])

        with pytest.raises(SlotTakenError):
            await interviews.claim_slot(other_parent, slot_id, family["other"])
        with pytest.raises(InterviewSlotNotFoundError):
            await interviews.unclaim_slot(other_parent, slot_id)

        (view,) = await interviews.get_interview_data_for_guardian(other_parent)
        assert [(s.is_claimed, s.claimed_by_me) for s in view.slots] == [(True, False)]

    @pytest.mark.asyncio
    async def test_unclaim_own_and_email_booking(
        self, db, interviews, family, teacher, parent
    ) -> None:
        await UserService(db).sync_user(parent, email="Sam@Example.com")
        await interviews.create_slots(teacher, family["class_id"], _times(2))
        first, second = await _slot_ids(interviews, teacher, family["class_id"])
        await interviews.claim_slot(parent, first, family["child"])
        await interviews.book_slot(teacher, second, family["other"], "Sam", "sam@example.com ")

        (view,) = await interviews.get_interview_data_for_guardian(parent)
        assert [s.claimed_by_me for s in view.slots] == [True, True]

        await interviews.unclaim_slot(parent, first)
        await interviews.unclaim_slot(parent, second)

        with pytest.raises(InterviewSlotNotFoundError):
            await interviews.unclaim_slot(parent, first)
        assert not any(s.is_claimed for s in await interviews.list_slots_for_class(teacher, family["class_id"]))

    @pytest.mark.asyncio
    async def test_guardian_without_children_sees_nothing(
        self, db, interviews, classroom, teacher, other_parent
    ) -> None:
        await MembershipService(db).add_guardian_to_class(classroom.id, other_parent)
        await interviews.create_slots(teacher, classroom.id, _times(1))

        assert await interviews.get_interview_data_for_guardian(other_parent) == []


class TestMembershipCascades:
    """Tests for releasing slots when members leave."""

    @pytest.mark.asyncio
    async def test_removed_student_releases_slot(self, db, interviews, family, teacher, parent) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, family["class_id"])
        await interviews.claim_slot(parent, slot_id, family["child"])

        await MembershipService(db).remove_student_from_class(family["class_id"], family["child"])

        (slot,) = await interviews.list_slots_for_class(teacher, family["class_id"])
        assert slot.id == slot_id
        assert not slot.is_claimed

    @pytest.mark.asyncio
    async def test_leaving_guardian_releases_claim(
        self, db, interviews, family, teacher, parent
    ) -> None:
        await interviews.create_slots(teacher, family["class_id"], _times(1))
        (slot_id,) = await _slot_ids(interviews, teacher, family["class_id"])
        await interviews.claim_slot(parent, slot_id, family["child"])

        await MembershipService(db).remove_guardian_from_class(family["class_id"], parent)

        assert not (await interviews.list_slots_for_class(teacher, family["class_id"]))[0].is_claimed
