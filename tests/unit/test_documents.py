# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for payload validation, filenames and document retrieval."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import DocumentSettings
from src.core.principal import Principal, Role
from src.domains.access import DocumentNotAvailableError, DocumentNotFoundError
from src.domains.documents import (
    Disposition,
    DocumentRetrievalService,
    InvalidDocumentError,
    permission_form_filename,
    permission_slip_filename,
    report_card_filename,
    sanitize_filename_part,
    validate_pdf_payload,
)
from src.domains.membership import MembershipService
from src.domains.permission_slip import PermissionSlipService
from src.domains.report_card import ReportCardService
from src.models.class_ import ClassResponse


class TestPayloadValidation:
    """Tests for validate_pdf_payload."""

    def test_valid_pdf(self, pdf_bytes: bytes) -> None:
        assert validate_pdf_payload(pdf_bytes) == pdf_bytes

    @pytest.mark.parametrize("payload", [None, b""])
    def test_missing_payload(self, payload) -> None:
        with pytest.raises(InvalidDocumentError, match="upload"):
            validate_pdf_payload(payload)

    def test_wrong_magic(self) -> None:
        with pytest.raises(InvalidDocumentError, match="must be a PDF"):
            validate_pdf_payload(b"PK\x03\x04" + b"0" * 200)

    def test_too_small(self) -> None:
        with pytest.raises(InvalidDocumentError):
            validate_pdf_payload(b"%PDF-1.4")

    def test_too_large(self, pdf_bytes: bytes) -> None:
        settings = DocumentSettings(max_payload_bytes=150)

        with pytest.raises(InvalidDocumentError, match="too large") as exc_info:
            validate_pdf_payload(pdf_bytes + b"0" * 200, settings)

        assert exc_info.value.details["max"] == 150


class TestFilenames:
    """Tests for filename sanitizing."""

    def test_spaces_and_punctuation(self) -> None:
        assert sanitize_filename_part("Fall 2025") == "fall-2025"
        assert sanitize_filename_part("Zoo/Trip: \"day\"") == "zoo-trip---day-"

    def test_non_ascii_replaced(self) -> None:
        assert sanitize_filename_part("Zoë") == "zo-"

    def test_fallback(self) -> None:
        assert sanitize_filename_part("", "student") == "student"
        assert sanitize_filename_part(None) == "document"

    def test_report_card_filename(self) -> None:
        assert report_card_filename("Fall 2025", "Emma Wilson") == "report-card-fall-2025-emma-wilson.pdf"

    def test_report_card_without_student(self) -> None:
        assert report_card_filename("T1", None) == "report-card-t1-student.pdf"

    def test_slip_and_form_filenames(self) -> None:
        assert permission_slip_filename("Zoo Trip") == "permission-slip-zoo-trip.pdf"
        assert permission_form_filename(None) == "permission-form-event.pdf"


class TestDocumentRetrieval:
    """Tests for DocumentRetrievalService against the database."""

    @pytest.fixture
    def service(self, db: AsyncSession) -> DocumentRetrievalService:
        return DocumentRetrievalService(db)

    async def _report_card(self, db, classroom, teacher, parent, add_students, pdf_bytes):
        (student_id,) = await add_students(classroom.id, "Emma Wilson")
        await MembershipService(db).link_guardian_to_student(student_id, parent)
        card = await ReportCardService(db).create_report_card(
            teacher, student_id, "Fall 2025", pdf_bytes
        )
        return card.id

    @pytest.mark.asyncio
    async def test_teacher_downloads_draft(
        self, db, service, classroom: ClassResponse, teacher, parent, add_students, pdf_bytes
    ) -> None:
        card_id = await self._report_card(db, classroom, teacher, parent, add_students, pdf_bytes)

        document = await service.get_report_card(Principal(teacher, Role.TEACHER), card_id)

        assert document.content == pdf_bytes
        assert document.filename == "report-card-fall-2025-emma-wilson.pdf"
        assert document.disposition is Disposition.ATTACHMENT
        assert document.content_disposition == (
            'attachment; filename="report-card-fall-2025-emma-wilson.pdf"'
        )

    @pytest.mark.asyncio
    async def test_guardian_waits_for_publication(
        self, db, service, classroom, teacher, parent, add_students, pdf_bytes
    ) -> None:
        card_id = await self._report_card(db, classroom, teacher, parent, add_students, pdf_bytes)
        guardian = Principal(parent, Role.PARENT)

        with pytest.raises(DocumentNotAvailableError):
            await service.get_report_card(guardian, card_id)

        await ReportCardService(db).publish_report_card(teacher, card_id)
        document = await service.get_report_card(guardian, card_id, inline=True)

        assert document.disposition is Disposition.INLINE

    @pytest.mark.asyncio
    async def test_unrelated_guardian_sees_not_found(
        self, db, service, classroom, teacher, parent, other_parent, add_students, pdf_bytes
    ) -> None:
        card_id = await self._report_card(db, classroom, teacher, parent, add_students, pdf_bytes)
        stranger = Principal(other_parent, Role.PARENT)

        with pytest.raises(DocumentNotFoundError):
            await service.get_report_card(stranger, card_id)
        with pytest.raises(DocumentNotFoundError):
            await service.get_report_card(stranger, "no-such-card")

    @pytest.mark.asyncio
    async def test_slip_falls_back_to_form(
        self, db, service, classroom, teacher, parent, pdf_bytes, other_pdf_bytes
    ) -> None:
        await MembershipService(db).add_guardian_to_class(classroom.id, parent)
        slips = PermissionSlipService(db)
        event = await slips.create_event(
            teacher, classroom.id, "Zoo Trip", requires_permission_slip=True
        )
        event_id = event.id
        (slip,) = await slips.list_slips_for_guardian(parent)
        slip_id = slip.id
        guardian = Principal(parent, Role.PARENT)

        with pytest.raises(DocumentNotFoundError, match="not yet available"):
            await service.get_permission_slip(guardian, slip_id)

        await slips.upload_permission_form(teacher, event_id, pdf_bytes)
        preview = await service.get_permission_slip(guardian, slip_id)
        assert preview.content == pdf_bytes
        assert preview.filename == "permission-slip-zoo-trip.pdf"

        await slips.send_permission_slips(teacher, event_id)
        await slips.sign_permission_slip(parent, slip_id, other_pdf_bytes)
        signed = await service.get_permission_slip(Principal(teacher, Role.TEACHER), slip_id)
        assert signed.content == other_pdf_bytes

    @pytest.mark.asyncio
    async def test_form_preview_for_class_teacher_only(
        self, db, service, classroom, teacher, other_teacher, parent, pdf_bytes
    ) -> None:
        event = await PermissionSlipService(db).create_event(
            teacher, classroom.id, "Museum", permission_form=pdf_bytes
        )
        event_id = event.id

        document = await service.get_permission_form_preview(
            Principal(teacher, Role.TEACHER), event_id
        )
        assert document.disposition is Disposition.INLINE
        assert document.filename == "permission-form-museum.pdf"

        for outsider in (Principal(other_teacher, Role.TEACHER), Principal(parent, Role.PARENT)):
            with pytest.raises(DocumentNotFoundError):
                await service.get_permission_form_preview(outsider, event_id)
