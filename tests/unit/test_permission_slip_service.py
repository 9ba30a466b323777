# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for events and permission slips."""

from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from src.domains.documents import InvalidDocumentError
from src.domains.lifecycle import InvalidTransitionError, SlipStatus
from src.domains.membership import MembershipService
from src.domains.permission_slip import (
    EventNotFoundError,
    InvalidEventError,
    PermissionSlipService,
    SlipConflictError,
    SlipNotFoundError,
)
from src.infrastructure.database.collections import UpdateResult
from src.models.class_ import ClassResponse
from src.utils.datetime import ensure_utc


@pytest.fixture
def slips(db: AsyncSession) -> PermissionSlipService:
    return PermissionSlipService(db)


@pytest_asyncio.fixture
async def joined(db: AsyncSession, classroom: ClassResponse, parent: str, other_parent: str) -> ClassResponse:
    membership = MembershipService(db)
    await membership.add_guardian_to_class(classroom.id, parent)
    await membership.add_guardian_to_class(classroom.id, other_parent)
    return classroom


async def _slip_id(slips: PermissionSlipService, event_id: str, guardian_id: str) -> str:
    for slip in await slips.list_slips_for_event(event_id):
        if slip.guardian_id == guardian_id:
            return slip.id
    raise AssertionError(f"no slip for {guardian_id}")


class TestEvents:
    """Tests for event creation."""

    @pytest.mark.asyncio
    async def test_slip_per_guardian(self, slips, joined, teacher, parent, other_parent) -> None:
        event = await slips.create_event(
            teacher, joined.id, "  Zoo Trip ", requires_permission_slip=True
        )

        assert event.title == "Zoo Trip"
        assert event.school_id == joined.school_id
        created = await slips.list_slips_for_event(event.id)
        assert sorted(s.guardian_id for s in created) == sorted([parent, other_parent])
        assert {s.status for s in created} == {SlipStatus.UNSENT.value}

    @pytest.mark.asyncio
    async def test_event_without_slips(self, slips, joined, teacher) -> None:
        event = await slips.create_event(teacher, joined.id, "Picture day")

        assert await slips.list_slips_for_event(event.id) == []

    @pytest.mark.asyncio
    async def test_title_validation(self, slips, classroom, teacher) -> None:
        with pytest.raises(InvalidEventError):
            await slips.create_event(teacher, classroom.id, "   ")
        with pytest.raises(InvalidEventError):
            await slips.create_event(teacher, classroom.id, "x" * 201)

    @pytest.mark.asyncio
    async def test_other_teacher_not_found(self, slips, classroom, other_teacher) -> None:
        with pytest.raises(EventNotFoundError):
            await slips.create_event(other_teacher, classroom.id, "Zoo")

    @pytest.mark.asyncio
    async def test_upload_form(self, slips, classroom, teacher, other_teacher, pdf_bytes) -> None:
        event = await slips.create_event(teacher, classroom.id, "Zoo", requires_permission_slip=True)
        event_id = event.id

        with pytest.raises(InvalidDocumentError):
            await slips.upload_permission_form(teacher, event_id, b"not a pdf")
        with pytest.raises(EventNotFoundError):
            await slips.upload_permission_form(other_teacher, event_id, pdf_bytes)

        await slips.upload_permission_form(teacher, event_id, pdf_bytes)
        assert (await slips.get_event(event_id)).permission_form == pdf_bytes

    @pytest.mark.asyncio
    async def test_upload_form_needs_slip_event(self, slips, classroom, teacher, pdf_bytes) -> None:
        event = await slips.create_event(teacher, classroom.id, "Picture day")
        event_id = event.id

        with pytest.raises(InvalidEventError, match="does not require permission slips"):
            await slips.upload_permission_form(teacher, event_id, pdf_bytes)

        assert (await slips.get_event(event_id)).permission_form is None


class TestEventChanges:
    """Tests for event schedule, update and delete."""

    @pytest.mark.asyncio
    async def test_schedule_fields(self, slips, classroom, teacher) -> None:
        start = datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc)
        event = await slips.create_event(
            teacher,
            classroom.id,
            "Zoo",
            description="  Bring a lunch ",
            start_at=start,
            end_at=start + timedelta(hours=6),
            due_date=date(2025, 10, 31),
        )

        assert event.description == "Bring a lunch"
        assert ensure_utc(event.start_at) == start
        assert ensure_utc(event.end_at) == start + timedelta(hours=6)
        assert event.due_date == date(2025, 10, 31)

    @pytest.mark.asyncio
    async def test_schedule_validation(self, slips, classroom, teacher) -> None:
        start = datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc)

        with pytest.raises(InvalidEventError, match="after start"):
            await slips.create_event(teacher, classroom.id, "Zoo", start_at=start, end_at=start)
        with pytest.raises(InvalidEventError, match="together"):
            await slips.create_event(teacher, classroom.id, "Zoo", start_at=start)

    @pytest.mark.asyncio
    async def test_update_fields(self, slips, classroom, teacher, other_teacher) -> None:
        start = datetime(2025, 11, 3, 9, 0, tzinfo=timezone.utc)
        event = await slips.create_event(
            teacher, classroom.id, "Zoo", start_at=start, end_at=start + timedelta(hours=2)
        )
        event_id = event.id

        updated = await slips.update_event(teacher, event_id, title=" Aquarium ", due_date=None)
        assert updated.title == "Aquarium"
        assert ensure_utc(updated.start_at) == start

        with pytest.raises(InvalidEventError, match="after start"):
            await slips.update_event(teacher, event_id, end_at=start - timedelta(hours=1))
        with pytest.raises(InvalidEventError):
            await slips.update_event(teacher, event_id, title="  ")
        with pytest.raises(EventNotFoundError):
            await slips.update_event(other_teacher, event_id, title="Museum")

        assert (await slips.get_event(event_id)).title == "Aquarium"

    @pytest.mark.asyncio
    async def test_update_toggles_slips(
        self, slips, joined, teacher, parent, other_parent, pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo")
        event_id = event.id

        await slips.update_event(teacher, event_id, requires_permission_slip=True)
        created = await slips.list_slips_for_event(event_id)
        assert sorted(s.guardian_id for s in created) == sorted([parent, other_parent])

        await slips.send_permission_slips(teacher, event_id)
        signed_id = await _slip_id(slips, event_id, parent)
        await slips.sign_permission_slip(parent, signed_id, pdf_bytes)

        await slips.update_event(teacher, event_id, requires_permission_slip=False)
        assert [s.id for s in await slips.list_slips_for_event(event_id)] == [signed_id]

    @pytest.mark.asyncio
    async def test_delete_cascades_to_slips(
        self, slips, joined, teacher, other_teacher, parent, pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        event_id = event.id
        await slips.send_permission_slips(teacher, event_id)
        await slips.sign_permission_slip(parent, await _slip_id(slips, event_id, parent), pdf_bytes)

        with pytest.raises(EventNotFoundError):
            await slips.delete_event(other_teacher, event_id)

        assert await slips.delete_event(teacher, event_id) == 2
        assert await slips.list_slips_for_event(event_id) == []
        with pytest.raises(EventNotFoundError):
            await slips.get_event(event_id)


class TestTeacherUpload:
    """Tests for recording a slip signed on paper."""

    @pytest.mark.asyncio
    async def test_unsent_slip_is_sent_then_signed(
        self, slips, joined, teacher, parent, pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)

        slip = await slips.upload_slip_for_guardian(teacher, event.id, parent, pdf_bytes)

        assert slip.status == SlipStatus.SIGNED.value
        assert slip.guardian_id == parent
        assert slip.sent_at is not None
        assert slip.signed_payload == pdf_bytes

    @pytest.mark.asyncio
    async def test_signed_slip_is_kept(
        self, slips, joined, teacher, parent, pdf_bytes, other_pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        event_id = event.id
        await slips.upload_slip_for_guardian(teacher, event_id, parent, pdf_bytes)

        with pytest.raises(SlipConflictError, match="Already has a submitted slip"):
            await slips.upload_slip_for_guardian(teacher, event_id, parent, other_pdf_bytes)

        slip = await slips.get_slip(await _slip_id(slips, event_id, parent))
        assert slip.signed_payload == pdf_bytes

    @pytest.mark.asyncio
    async def test_rejected_uploads(
        self, slips, joined, teacher, other_teacher, parent, pdf_bytes
    ) -> None:
        plain = await slips.create_event(teacher, joined.id, "Picture day")
        gated = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)

        with pytest.raises(InvalidEventError):
            await slips.upload_slip_for_guardian(teacher, plain.id, parent, pdf_bytes)
        with pytest.raises(EventNotFoundError):
            await slips.upload_slip_for_guardian(other_teacher, gated.id, parent, pdf_bytes)
        with pytest.raises(SlipNotFoundError):
            await slips.upload_slip_for_guardian(teacher, gated.id, "auth0|stranger", pdf_bytes)
        with pytest.raises(InvalidDocumentError):
            await slips.upload_slip_for_guardian(teacher, gated.id, parent, b"not a pdf")


class TestTransitions:
    """Tests for send and sign."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, slips, joined, teacher, parent, pdf_bytes, other_pdf_bytes) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        event_id = event.id
        slip_id = await _slip_id(slips, event_id, parent)

        assert await slips.send_permission_slips(teacher, event_id) == 2
        assert await slips.send_permission_slips(teacher, event_id) == 0

        signed = await slips.sign_permission_slip(parent, slip_id, pdf_bytes)
        assert signed.status == SlipStatus.SIGNED.value
        assert signed.signed_at is not None

        resigned = await slips.sign_permission_slip(parent, slip_id, other_pdf_bytes)
        assert resigned.status == SlipStatus.SIGNED.value
        assert resigned.signed_payload == other_pdf_bytes

        assert [s.id for s in await slips.list_slips_for_guardian(parent, SlipStatus.SIGNED)] == [slip_id]

    @pytest.mark.asyncio
    async def test_sign_unsent_rejected_and_state_unchanged(
        self, slips, joined, teacher, parent, pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        slip_id = await _slip_id(slips, event.id, parent)

        with pytest.raises(InvalidTransitionError):
            await slips.sign_permission_slip(parent, slip_id, pdf_bytes)

        slip = await slips.get_slip(slip_id)
        assert slip.status == SlipStatus.UNSENT.value
        assert slip.signed_payload is None

    @pytest.mark.asyncio
    async def test_other_guardian_cannot_sign(
        self, slips, joined, teacher, parent, other_parent, pdf_bytes
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        event_id = event.id
        slip_id = await _slip_id(slips, event_id, parent)
        await slips.send_permission_slips(teacher, event_id)

        with pytest.raises(SlipNotFoundError):
            await slips.sign_permission_slip(other_parent, slip_id, pdf_bytes)

    @pytest.mark.asyncio
    async def test_concurrent_change_is_conflict(
        self, slips, joined, teacher, parent, pdf_bytes, monkeypatch
    ) -> None:
        event = await slips.create_event(teacher, joined.id, "Zoo", requires_permission_slip=True)
        event_id = event.id
        slip_id = await _slip_id(slips, event_id, parent)
        await slips.send_permission_slips(teacher, event_id)

        async def lost_race(*args, **kwargs):
            return UpdateResult(matched=0, modified=0)

        monkeypatch.setattr(slips.slips, "update_one", lost_race)

        with pytest.raises(SlipConflictError):
            await slips.sign_permission_slip(parent, slip_id, pdf_bytes)

    @pytest.mark.asyncio
    async def test_late_guardian_gets_slip(self, db, slips, classroom, teacher, parent) -> None:
        event = await slips.create_event(teacher, classroom.id, "Zoo", requires_permission_slip=True)
        event_id = event.id

        assert await slips.create_slips_for_guardian(classroom.id, parent) == 1
        assert await slips.create_slips_for_guardian(classroom.id, parent) == 0
        assert len(await slips.list_slips_for_event(event_id)) == 1
