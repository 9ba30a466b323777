# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report card service.

This module provides the ReportCardService class for:
- Creating draft report cards for a student and term
- Replacing the document of a draft
- Publishing and unpublishing
- Listing cards for teachers and published cards for guardians

A teacher may manage a card if they created it or teach a class the
student is in. Unpublishing keeps the stored document.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import DocumentSettings, get_settings
from src.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SchoolConnectError,
)
from src.domains.documents.payload import validate_pdf_payload
from src.domains.lifecycle import (
    InvalidTransitionError,
    ReportCardStatus,
    check_report_card_transition,
)
from src.infrastructure.database.collections import Collection, DuplicateKeyError
from src.infrastructure.database.models import Class, ReportCard, Student
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

MAX_TERM_LENGTH = 50


class ReportCardServiceError(SchoolConnectError):
    """Base exception for report card service errors."""

    pass


class ReportCardNotFoundError(ReportCardServiceError, NotFoundError):
    """Raised when a report card is not found or not visible to the caller."""

    pass


class ReportCardExistsError(ReportCardServiceError, ConflictError):
    """Raised when a card already exists for the student and term."""

    pass


class InvalidReportCardError(ReportCardServiceError, InvalidInputError):
    """Raised when report card data is invalid."""

    pass


class ReportCardService:
    """Service for report card lifecycle operations.

    Attributes:
        db: Async database session.
        settings: Payload limits.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: DocumentSettings | None = None,
    ) -> None:
        """Initialize the report card service.

        Args:
            db: Async database session.
            settings: Payload limits; defaults to the application settings.
        """
        self.db = db
        self.settings = settings or get_settings().documents
        self.report_cards = Collection(db, ReportCard)
        self.students = Collection(db, Student)
        self.classes = Collection(db, Class)

    async def create_report_card(
        self,
        teacher_id: str,
        student_id: str,
        term: str,
        payload: bytes | None = None,
    ) -> ReportCard:
        """Create a draft report card.

        Args:
            teacher_id: Teacher composing the card.
            student_id: Student the card is for.
            term: Term label.
            payload: Optional document; required later to publish.

        Returns:
            The created draft.

        Raises:
            InvalidReportCardError: If the term is missing or too long.
            ReportCardNotFoundError: If the teacher does not teach the student.
            ReportCardExistsError: If a card exists for the student and term.
        """
        term = (term or "").strip()
        if not student_id or not term:
            raise InvalidReportCardError("Student and term are required")
        if len(term) > MAX_TERM_LENGTH:
            raise InvalidReportCardError(f"Term must be at most {MAX_TERM_LENGTH} characters")
        if payload is not None:
            validate_pdf_payload(payload, self.settings)

        if not await self.teaches_student(teacher_id, student_id):
            raise ReportCardNotFoundError(f"Student {student_id} not found")

        try:
            card = await self.report_cards.insert_one({
                "student_id": student_id,
                "teacher_id": teacher_id,
                "term": term,
                "status": ReportCardStatus.DRAFT.value,
                "payload": payload,
            })
        except DuplicateKeyError as e:
            raise ReportCardExistsError(
                f'A report card for term "{term}" already exists. Edit it instead.'
            ) from e

        logger.info("Created report card %s for student %s (%s)", card.id, student_id, term)
        return card

    async def update_report_card_payload(
        self,
        teacher_id: str,
        report_card_id: str,
        payload: bytes,
    ) -> ReportCard:
        """Replace the document of a draft report card.

        Raises:
            ReportCardNotFoundError: If the card is absent or not the teacher's.
            InvalidTransitionError: If the card is published.
        """
        validate_pdf_payload(payload, self.settings)
        card = await self._get_teacher_card(teacher_id, report_card_id)
        if card.status != ReportCardStatus.DRAFT.value:
            raise InvalidTransitionError(
                "report_card", card.status, ReportCardStatus.DRAFT.value
            )

        result = await self.report_cards.update_one(
            {"id": report_card_id, "status": ReportCardStatus.DRAFT.value},
            values={"payload": payload},
        )
        if result.matched == 0:
            raise InvalidTransitionError(
                "report_card", ReportCardStatus.PUBLISHED.value, ReportCardStatus.DRAFT.value
            )

        logger.info("Updated report card %s", report_card_id)
        return await self.get_report_card(report_card_id)

    async def publish_report_card(self, teacher_id: str, report_card_id: str) -> ReportCard:
        """Publish a draft report card to the student's guardians.

        Raises:
            ReportCardNotFoundError: If the card is absent or not the teacher's.
            InvalidTransitionError: If the card is already published.
            MissingPayloadError: If the card has no document.
        """
        return await self._transition(
            teacher_id,
            report_card_id,
            ReportCardStatus.PUBLISHED,
        )

    async def unpublish_report_card(self, teacher_id: str, report_card_id: str) -> ReportCard:
        """Return a published report card to draft, hiding it from guardians.

        Raises:
            ReportCardNotFoundError: If the card is absent or not the teacher's.
            InvalidTransitionError: If the card is not published.
        """
        return await self._transition(
            teacher_id,
            report_card_id,
            ReportCardStatus.DRAFT,
        )

    async def get_report_card(self, report_card_id: str) -> ReportCard:
        """Get a report card by ID.

        Raises:
            ReportCardNotFoundError: If the card does not exist.
        """
        card = await self.report_cards.find_one({"id": report_card_id})
        if card is None:
            raise ReportCardNotFoundError(f"Report card {report_card_id} not found")
        return card

    async def list_report_cards_for_teacher(self, teacher_id: str) -> list[ReportCard]:
        """List cards for every student in the teacher's classes, newest first."""
        classes = await self.classes.find({"teacher_ids": teacher_id})
        student_ids = {sid for cls in classes for sid in (cls.student_ids or [])}
        cards = await self.report_cards.find(
            {"student_id": sorted(student_ids)},
            order_by=[ReportCard.created_at.desc()],
        )
        authored = await self.report_cards.find({"teacher_id": teacher_id})
        seen = {card.id for card in cards}
        cards.extend(card for card in authored if card.id not in seen)
        return cards

    async def list_published_report_cards_for_guardian(
        self,
        guardian_id: str,
    ) -> list[ReportCard]:
        """List published cards of the students a guardian is linked to."""
        students = await self.students.find({"guardian_ids": guardian_id})
        if not students:
            return []
        return await self.report_cards.find(
            {
                "student_id": [s.id for s in students],
                "status": ReportCardStatus.PUBLISHED.value,
            },
            order_by=[ReportCard.published_at.desc()],
        )

    async def teaches_student(self, teacher_id: str, student_id: str) -> bool:
        """Check whether the teacher teaches a class containing the student."""
        return await self.classes.find_one({
            "student_ids": student_id,
            "teacher_ids": teacher_id,
        }) is not None

    async def _get_teacher_card(self, teacher_id: str, report_card_id: str) -> ReportCard:
        """Get a card the teacher created or whose student they teach."""
        card = await self.report_cards.find_one({"id": report_card_id})
        if card is None:
            raise ReportCardNotFoundError(f"Report card {report_card_id} not found")
        student_id = card.student_id
        if card.teacher_id != teacher_id and not await self.teaches_student(teacher_id, student_id):
            raise ReportCardNotFoundError(f"Report card {report_card_id} not found")
        return card

    async def _transition(
        self,
        teacher_id: str,
        report_card_id: str,
        target: ReportCardStatus,
    ) -> ReportCard:
        """Apply a status change conditioned on the status it was checked against."""
        card = await self._get_teacher_card(teacher_id, report_card_id)
        current = card.status
        check_report_card_transition(current, target, has_payload=bool(card.payload))

        values: dict[str, object] = {"status": target.value}
        if target is ReportCardStatus.PUBLISHED:
            values["published_at"] = utc_now()

        result = await self.report_cards.update_one(
            {"id": report_card_id, "status": current},
            values=values,
        )
        if result.matched == 0:
            raise InvalidTransitionError("report_card", target.value, target.value)

        logger.info(
            "Report card %s moved from %s to %s by %s",
            report_card_id,
            current,
            target.value,
            teacher_id,
        )
        return await self.get_report_card(report_card_id)
