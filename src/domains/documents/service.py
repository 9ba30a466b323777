# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Document retrieval boundary.

This module provides the DocumentRetrievalService class, which turns a
document identifier and a principal into a downloadable payload:

1. load the document and its owning records
2. ask the access evaluator
3. only on ALLOW, return the bytes with a sanitized filename

Example:
    >>> service = DocumentRetrievalService(db)
    >>> doc = await service.get_report_card(principal, card_id, inline=True)
    >>> doc.content_disposition
    'inline; filename="report-card-fall-2025-emma-wilson.pdf"'
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.principal import Principal
from src.domains.access import (
    AccessContextResolver,
    DocumentNotFoundError,
    enforce,
)
from src.domains.lifecycle import SlipStatus
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import (
    CalendarEvent,
    PermissionSlip,
    ReportCard,
    Student,
)

logger = logging.getLogger(__name__)

PDF_MEDIA_TYPE = "application/pdf"

_DISALLOWED = re.compile(r"[^A-Za-z0-9-]")


class Disposition(str, Enum):
    """How a client should present a payload."""

    INLINE = "inline"
    ATTACHMENT = "attachment"


@dataclass(frozen=True)
class DocumentPayload:
    """A document cleared for delivery.

    Attributes:
        content: Raw bytes.
        filename: Sanitized download filename.
        disposition: Inline preview or attachment download.
        media_type: MIME type of the content.
    """

    content: bytes
    filename: str
    disposition: Disposition
    media_type: str = PDF_MEDIA_TYPE

    @property
    def content_disposition(self) -> str:
        """Value for the Content-Disposition header."""
        return f'{self.disposition.value}; filename="{self.filename}"'


def sanitize_filename_part(value: str | None, fallback: str = "document") -> str:
    """Make a metadata value safe for use in a filename.

    Every character other than an ASCII letter, digit or hyphen becomes a
    hyphen, and the result is lower-cased.
    """
    if not value:
        return fallback
    return _DISALLOWED.sub("-", value).lower()


def report_card_filename(term: str, student_name: str | None) -> str:
    """Filename for a report card download."""
    return (
        f"report-card-{sanitize_filename_part(term)}"
        f"-{sanitize_filename_part(student_name, 'student')}.pdf"
    )


def permission_slip_filename(title: str | None) -> str:
    """Filename for a permission slip download."""
    return f"permission-slip-{sanitize_filename_part(title, 'event')}.pdf"


def permission_form_filename(title: str | None) -> str:
    """Filename for an event's blank permission form."""
    return f"permission-form-{sanitize_filename_part(title, 'event')}.pdf"


class DocumentRetrievalService:
    """Access-checked retrieval of document payloads.

    Attributes:
        db: Async database session.
        resolver: Builds evaluator contexts from stored records.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the retrieval service.

        Args:
            db: Async database session.
        """
        self.db = db
        self.resolver = AccessContextResolver(db)
        self.report_cards = Collection(db, ReportCard)
        self.students = Collection(db, Student)
        self.slips = Collection(db, PermissionSlip)
        self.events = Collection(db, CalendarEvent)

    async def get_report_card(
        self,
        principal: Principal,
        report_card_id: str,
        inline: bool = False,
    ) -> DocumentPayload:
        """Get a report card's document.

        Raises:
            DocumentNotFoundError: If the card is absent, has no document,
                or the caller has no right to know it exists.
            DocumentNotAvailableError: If the caller is the student's
                guardian and the card is not published.
        """
        card = await self.report_cards.find_one({"id": report_card_id})
        context = await self.resolver.report_card_context(card) if card else None
        enforce(principal, context)

        if not card.payload:
            raise DocumentNotFoundError("Report card not found")

        student = await self.students.find_one({"id": card.student_id})
        filename = report_card_filename(card.term, student.name if student else None)

        logger.info("Serving report card %s to %s", report_card_id, principal.subject_id)
        return self._payload(card.payload, filename, inline)

    async def get_permission_slip(
        self,
        principal: Principal,
        slip_id: str,
        inline: bool = False,
    ) -> DocumentPayload:
        """Get a permission slip's document.

        A signed slip returns the signed document. Before that, the event's
        blank form is returned as a preview; with neither, the slip has
        nothing to show yet.

        Raises:
            DocumentNotFoundError: If the slip is absent, not visible to the
                caller, or has no document yet.
        """
        slip = await self.slips.find_one({"id": slip_id})
        context = await self.resolver.slip_context(slip) if slip else None
        enforce(principal, context)

        event = await self.events.find_one({"id": slip.event_id})
        title = event.title if event else None

        if slip.status == SlipStatus.SIGNED.value and slip.signed_payload:
            content = slip.signed_payload
        elif event is not None and event.permission_form:
            content = event.permission_form
        else:
            raise DocumentNotFoundError("Permission form not yet available")

        logger.info("Serving permission slip %s to %s", slip_id, principal.subject_id)
        return self._payload(content, permission_slip_filename(title), inline)

    async def get_permission_form_preview(
        self,
        principal: Principal,
        event_id: str,
    ) -> DocumentPayload:
        """Get an event's blank permission form for a teacher to preview.

        Raises:
            DocumentNotFoundError: If the event is absent, has no form, or
                the caller does not teach its class.
        """
        event = await self.events.find_one({"id": event_id})
        context = await self.resolver.form_context(event) if event else None
        enforce(principal, context)

        if not event.permission_form:
            raise DocumentNotFoundError("Permission form not found")

        return self._payload(
            event.permission_form,
            permission_form_filename(event.title),
            inline=True,
        )

    @staticmethod
    def _payload(content: bytes, filename: str, inline: bool) -> DocumentPayload:
        return DocumentPayload(
            content=content,
            filename=filename,
            disposition=Disposition.INLINE if inline else Disposition.ATTACHMENT,
        )
