# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calendar event and permission slip service.

This module provides the PermissionSlipService class for:
- Creating, editing and deleting class events, optionally gated by a
  permission slip
- Attaching the unsigned permission form template to an event
- Keeping one slip per (event, guardian) as guardians join and leave
- Moving slips through unsent -> sent -> signed, including a teacher
  recording a signed copy handed in on paper

Every status change is written with the current status in the filter, so
two requests racing on the same slip cannot both apply a transition.
"""

import logging
from datetime import date, datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import DocumentSettings, get_settings
from src.core.exceptions import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    SchoolConnectError,
)
from src.domains.documents.payload import validate_pdf_payload
from src.domains.lifecycle import SlipStatus, check_slip_transition
from src.infrastructure.database.collections import Collection, DuplicateKeyError
from src.infrastructure.database.models import (
    CalendarEvent,
    Class,
    PermissionSlip,
)
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200

EVENT_FIELDS = frozenset({
    "title",
    "description",
    "start_at",
    "end_at",
    "due_date",
    "requires_permission_slip",
})


class PermissionSlipServiceError(SchoolConnectError):
    """Base exception for permission slip service errors."""

    pass


class EventNotFoundError(PermissionSlipServiceError, NotFoundError):
    """Raised when an event is not found or not visible to the caller."""

    pass


class SlipNotFoundError(PermissionSlipServiceError, NotFoundError):
    """Raised when a slip is not found or not owned by the caller."""

    pass


class InvalidEventError(PermissionSlipServiceError, InvalidInputError):
    """Raised when event data is invalid."""

    pass


class SlipConflictError(PermissionSlipServiceError, ConflictError):
    """Raised when a slip changed status while being updated."""

    pass


class PermissionSlipService:
    """Service for calendar events and their permission slips.

    Attributes:
        db: Async database session.
        settings: Payload limits.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: DocumentSettings | None = None,
    ) -> None:
        """Initialize the permission slip service.

        Args:
            db: Async database session.
            settings: Payload limits; defaults to the application settings.
        """
        self.db = db
        self.settings = settings or get_settings().documents
        self.classes = Collection(db, Class)
        self.events = Collection(db, CalendarEvent)
        self.slips = Collection(db, PermissionSlip)

    # =========================================================================
    # Events
    # =========================================================================

    async def create_event(
        self,
        teacher_id: str,
        class_id: str,
        title: str,
        requires_permission_slip: bool = False,
        permission_form: bytes | None = None,
        description: str | None = None,
        start_at: datetime | None = None,
        end_at: datetime | None = None,
        due_date: date | None = None,
    ) -> CalendarEvent:
        """Create an event for a class.

        When the event requires a slip, one unsent slip is created for each
        guardian currently on the class.

        Args:
            teacher_id: Teacher creating the event.
            class_id: Class the event belongs to.
            title: Event title.
            requires_permission_slip: Whether guardians must sign a slip.
            permission_form: Optional unsigned form template.
            description: Optional free text shown to guardians.
            start_at: When the event starts; given together with end_at.
            end_at: When the event ends.
            due_date: Date by which slips should be returned.

        Returns:
            The created event.

        Raises:
            EventNotFoundError: If the class is not one of the teacher's.
            InvalidEventError: If the title is missing or too long, or the
                schedule is incomplete or ends before it starts.
        """
        title = self._clean_title(title)
        start_at, end_at = ensure_utc(start_at), ensure_utc(end_at)
        if (start_at is None) != (end_at is None):
            raise InvalidEventError("Start and end time must be given together")
        self._check_schedule(start_at, end_at)
        if permission_form is not None:
            validate_pdf_payload(permission_form, self.settings)

        cls = await self.classes.find_one({"id": class_id, "teacher_ids": teacher_id})
        if cls is None:
            raise EventNotFoundError(f"Class {class_id} not found")

        event = await self.events.insert_one({
            "school_id": cls.school_id,
            "class_id": cls.id,
            "title": title,
            "description": self._clean_description(description),
            "start_at": start_at,
            "end_at": end_at,
            "due_date": due_date,
            "requires_permission_slip": requires_permission_slip,
            "permission_form": permission_form,
        })
        event_id = event.id
        logger.info("Created event: %s (%s) for class %s", title, event_id, class_id)

        if requires_permission_slip:
            await self._create_slips_for_class(event_id, cls)

        return await self.get_event(event_id)

    async def update_event(
        self,
        teacher_id: str,
        event_id: str,
        **updates: Any,
    ) -> CalendarEvent:
        """Update the given event fields.

        Turning the slip requirement on creates the missing slips for the
        class guardians. Turning it off deletes the unsigned ones and keeps
        signed slips as the record of consent.

        Raises:
            EventNotFoundError: If the event is not on one of the teacher's classes.
            InvalidEventError: If the new values are invalid.
        """
        event = await self._get_teacher_event(teacher_id, event_id)
        if not updates:
            return event
        unknown = set(updates) - EVENT_FIELDS
        if unknown:
            raise InvalidEventError(f"Cannot update event fields: {sorted(unknown)}")
        if "requires_permission_slip" in updates and updates["requires_permission_slip"] is None:
            raise InvalidEventError("requires_permission_slip cannot be cleared")

        if "title" in updates:
            updates["title"] = self._clean_title(updates["title"])
        if "description" in updates:
            updates["description"] = self._clean_description(updates["description"])
        for field in ("start_at", "end_at"):
            if field in updates:
                if updates[field] is None:
                    raise InvalidEventError("Start and end time cannot be cleared")
                updates[field] = ensure_utc(updates[field])
        start_at = updates.get("start_at", ensure_utc(event.start_at))
        end_at = updates.get("end_at", ensure_utc(event.end_at))
        if (start_at is None) != (end_at is None):
            raise InvalidEventError("Start and end time must be given together")
        self._check_schedule(start_at, end_at)

        was_gated = event.requires_permission_slip
        class_id = event.class_id
        await self.events.update_one({"id": event.id}, values=updates)
        logger.info("Updated event %s: %s", event_id, sorted(updates))

        gated = updates.get("requires_permission_slip", was_gated)
        if gated and not was_gated:
            cls = await self.classes.find_one({"id": class_id})
            if cls is not None:
                await self._create_slips_for_class(event_id, cls)
        elif was_gated and not gated:
            deleted = await self.slips.delete_many({
                "event_id": event_id,
                "status": [SlipStatus.UNSENT.value, SlipStatus.SENT.value],
            })
            logger.info("Deleted %d unsigned permission slips of event %s", deleted, event_id)

        return await self.get_event(event_id)

    async def delete_event(self, teacher_id: str, event_id: str) -> int:
        """Delete an event together with all of its slips.

        The event goes first so no new slips are created for it while its
        existing slips are removed.

        Returns:
            Number of slips deleted.

        Raises:
            EventNotFoundError: If the event is not on one of the teacher's classes.
        """
        event = await self._get_teacher_event(teacher_id, event_id)

        await self.events.delete_one({"id": event.id})
        deleted = await self.slips.delete_many({"event_id": event_id})

        logger.info("Deleted event %s and %d permission slips", event_id, deleted)
        return deleted

    async def get_event(self, event_id: str) -> CalendarEvent:
        """Get an event by ID.

        Raises:
            EventNotFoundError: If the event does not exist.
        """
        event = await self.events.find_one({"id": event_id})
        if event is None:
            raise EventNotFoundError(f"Event {event_id} not found")
        return event

    async def upload_permission_form(
        self,
        teacher_id: str,
        event_id: str,
        payload: bytes,
    ) -> None:
        """Attach the unsigned permission form template to an event.

        Raises:
            EventNotFoundError: If the event is not on one of the teacher's classes.
            InvalidEventError: If the event does not require permission slips.
            InvalidDocumentError: If the payload is not an acceptable PDF.
        """
        validate_pdf_payload(payload, self.settings)
        event = await self._get_teacher_event(teacher_id, event_id)
        if not event.requires_permission_slip:
            raise InvalidEventError("Event does not require permission slips")

        await self.events.update_one(
            {"id": event.id},
            values={"permission_form": payload},
        )
        logger.info("Uploaded permission form for event %s", event_id)

    # =========================================================================
    # Slip membership
    # =========================================================================

    async def create_slips_for_guardian(self, class_id: str, guardian_id: str) -> int:
        """Ensure a guardian has a slip for every slip-gated event of a class.

        Returns:
            Number of slips created.
        """
        events = await self.events.find({
            "class_id": class_id,
            "requires_permission_slip": True,
        })
        event_ids = [event.id for event in events]

        created = 0
        for event_id in event_ids:
            if await self._ensure_slip(event_id, class_id, guardian_id):
                created += 1

        if created:
            logger.info(
                "Created %d permission slips for guardian %s in class %s",
                created,
                guardian_id,
                class_id,
            )
        return created

    async def delete_unsigned_slips(self, class_id: str, guardian_id: str) -> int:
        """Delete a guardian's not-yet-signed slips for a class.

        Signed slips are kept as the record of consent.

        Returns:
            Number of slips deleted.
        """
        deleted = await self.slips.delete_many({
            "class_id": class_id,
            "guardian_id": guardian_id,
            "status": [SlipStatus.UNSENT.value, SlipStatus.SENT.value],
        })
        if deleted:
            logger.info(
                "Deleted %d unsigned permission slips of guardian %s in class %s",
                deleted,
                guardian_id,
                class_id,
            )
        return deleted

    # =========================================================================
    # Transitions
    # =========================================================================

    async def send_permission_slips(self, teacher_id: str, event_id: str) -> int:
        """Send every unsent slip of an event to its guardian.

        Returns:
            Number of slips moved to sent.

        Raises:
            EventNotFoundError: If the event is not on one of the teacher's classes.
        """
        event = await self._get_teacher_event(teacher_id, event_id)
        check_slip_transition(SlipStatus.UNSENT, SlipStatus.SENT)

        unsent = await self.slips.find({
            "event_id": event.id,
            "status": SlipStatus.UNSENT.value,
        })
        slip_ids = [slip.id for slip in unsent]

        sent = 0
        for slip_id in slip_ids:
            result = await self.slips.update_one(
                {"id": slip_id, "status": SlipStatus.UNSENT.value},
                values={"status": SlipStatus.SENT.value, "sent_at": utc_now()},
            )
            sent += result.modified

        logger.info("Sent %d permission slips for event %s", sent, event_id)
        return sent

    async def sign_permission_slip(
        self,
        guardian_id: str,
        slip_id: str,
        payload: bytes,
    ) -> PermissionSlip:
        """Record a guardian's signed slip.

        Signing again overwrites the stored document and keeps the slip
        signed.

        Args:
            guardian_id: Guardian submitting the signature.
            slip_id: Slip being signed.
            payload: Signed PDF.

        Returns:
            The signed slip.

        Raises:
            SlipNotFoundError: If the slip does not exist or is someone else's.
            InvalidTransitionError: If the slip has not been sent yet.
            InvalidDocumentError: If the payload is not an acceptable PDF.
            SlipConflictError: If the slip changed status concurrently.
        """
        validate_pdf_payload(payload, self.settings)

        slip = await self.slips.find_one({"id": slip_id, "guardian_id": guardian_id})
        if slip is None:
            raise SlipNotFoundError(f"Permission slip {slip_id} not found")

        current = slip.status
        check_slip_transition(current, SlipStatus.SIGNED, payload)

        result = await self.slips.update_one(
            {"id": slip_id, "status": current},
            values={
                "status": SlipStatus.SIGNED.value,
                "signed_payload": payload,
                "signed_at": utc_now(),
            },
        )
        if result.matched == 0:
            raise SlipConflictError(f"Permission slip {slip_id} changed while signing")

        logger.info("Guardian %s signed permission slip %s", guardian_id, slip_id)
        return await self.get_slip(slip_id)

    async def upload_slip_for_guardian(
        self,
        teacher_id: str,
        event_id: str,
        guardian_id: str,
        payload: bytes,
    ) -> PermissionSlip:
        """Record a signed slip a guardian handed to the teacher.

        An unsent slip is sent first so it still passes through every
        status. A slip that is already signed is left alone.

        Args:
            teacher_id: Teacher recording the slip.
            event_id: Slip-gated event on one of the teacher's classes.
            guardian_id: Guardian the slip belongs to.
            payload: Signed PDF.

        Returns:
            The signed slip.

        Raises:
            EventNotFoundError: If the event is not on one of the teacher's classes.
            InvalidEventError: If the event does not require permission slips.
            SlipNotFoundError: If the guardian is not on the event's class.
            SlipConflictError: If the slip is already signed or changed concurrently.
            InvalidDocumentError: If the payload is not an acceptable PDF.
        """
        validate_pdf_payload(payload, self.settings)
        event = await self._get_teacher_event(teacher_id, event_id)
        if not event.requires_permission_slip:
            raise InvalidEventError("Event does not require permission slips")

        slip = await self.slips.find_one({"event_id": event.id, "guardian_id": guardian_id})
        if slip is None:
            cls = await self.classes.find_one({"id": event.class_id, "guardian_ids": guardian_id})
            if cls is None:
                raise SlipNotFoundError(f"No permission slip for guardian {guardian_id}")
            await self._ensure_slip(event.id, cls.id, guardian_id)
            slip = await self.slips.find_one({"event_id": event.id, "guardian_id": guardian_id})
            if slip is None:
                raise SlipConflictError(f"Permission slip for event {event_id} changed")

        slip_id = slip.id
        if slip.status == SlipStatus.SIGNED.value:
            raise SlipConflictError("Already has a submitted slip")

        if slip.status == SlipStatus.UNSENT.value:
            check_slip_transition(SlipStatus.UNSENT, SlipStatus.SENT)
            await self.slips.update_one(
                {"id": slip_id, "status": SlipStatus.UNSENT.value},
                values={"status": SlipStatus.SENT.value, "sent_at": utc_now()},
            )

        check_slip_transition(SlipStatus.SENT, SlipStatus.SIGNED, payload)
        result = await self.slips.update_one(
            {"id": slip_id, "status": SlipStatus.SENT.value},
            values={
                "status": SlipStatus.SIGNED.value,
                "signed_payload": payload,
                "signed_at": utc_now(),
            },
        )
        if result.matched == 0:
            raise SlipConflictError(f"Permission slip {slip_id} changed while signing")

        logger.info(
            "Teacher %s recorded signed permission slip %s for guardian %s",
            teacher_id,
            slip_id,
            guardian_id,
        )
        return await self.get_slip(slip_id)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_slip(self, slip_id: str) -> PermissionSlip:
        """Get a slip by ID.

        Raises:
            SlipNotFoundError: If the slip does not exist.
        """
        slip = await self.slips.find_one({"id": slip_id})
        if slip is None:
            raise SlipNotFoundError(f"Permission slip {slip_id} not found")
        return slip

    async def list_slips_for_event(self, event_id: str) -> list[PermissionSlip]:
        """List the slips of an event."""
        return await self.slips.find({"event_id": event_id})

    async def list_slips_for_guardian(
        self,
        guardian_id: str,
        status: SlipStatus | None = None,
    ) -> list[PermissionSlip]:
        """List a guardian's slips, optionally filtered by status."""
        filter: dict[str, str] = {"guardian_id": guardian_id}
        if status is not None:
            filter["status"] = SlipStatus(status).value
        return await self.slips.find(filter)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_teacher_event(self, teacher_id: str, event_id: str) -> CalendarEvent:
        """Get an event on one of the teacher's classes."""
        event = await self.events.find_one({"id": event_id})
        if event is None or event.class_id is None:
            raise EventNotFoundError(f"Event {event_id} not found")

        cls = await self.classes.find_one({"id": event.class_id, "teacher_ids": teacher_id})
        if cls is None:
            raise EventNotFoundError(f"Event {event_id} not found")
        return event

    async def _create_slips_for_class(self, event_id: str, cls: Class) -> int:
        """Create an unsent slip for each guardian currently on the class."""
        created = 0
        for guardian_id in list(cls.guardian_ids or []):
            if await self._ensure_slip(event_id, cls.id, guardian_id):
                created += 1
        logger.info("Created %d permission slips for event %s", created, event_id)
        return created

    @staticmethod
    def _clean_title(title: str | None) -> str:
        title = (title or "").strip()
        if not title:
            raise InvalidEventError("Event title is required")
        if len(title) > MAX_TITLE_LENGTH:
            raise InvalidEventError(f"Event title must be at most {MAX_TITLE_LENGTH} characters")
        return title

    @staticmethod
    def _clean_description(description: str | None) -> str | None:
        description = (description or "").strip()
        return description or None

    @staticmethod
    def _check_schedule(start_at: datetime | None, end_at: datetime | None) -> None:
        if start_at is not None and end_at is not None and end_at <= start_at:
            raise InvalidEventError("End time must be after start time")

    async def _ensure_slip(self, event_id: str, class_id: str, guardian_id: str) -> bool:
        """Create an unsent slip unless one exists for (event, guardian)."""
        if await self.slips.find_one({"event_id": event_id, "guardian_id": guardian_id}):
            return False
        try:
            await self.slips.insert_one({
                "event_id": event_id,
                "class_id": class_id,
                "guardian_id": guardian_id,
                "status": SlipStatus.UNSENT.value,
            })
        except DuplicateKeyError:
            return False
        return True
