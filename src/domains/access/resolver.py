# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Resolve document identifiers to the context the evaluator decides on."""

import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.principal import Principal
from src.domains.access.evaluator import (
    AccessDecision,
    ConversationContext,
    DocumentContext,
    PermissionFormContext,
    PermissionSlipContext,
    ReportCardContext,
    can_view,
)
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import (
    CalendarEvent,
    Class,
    Conversation,
    Message,
    PermissionSlip,
    ReportCard,
    Student,
)

logger = logging.getLogger(__name__)


class DocumentKind(str, Enum):
    """Categories of protected documents."""

    REPORT_CARD = "report_card"
    PERMISSION_SLIP = "permission_slip"
    PERMISSION_FORM = "permission_form"
    CONVERSATION = "conversation"
    MESSAGE = "message"


@dataclass(frozen=True)
class DocumentRef:
    """A reference to a protected document."""

    kind: DocumentKind
    id: str


class AccessContextResolver:
    """Loads the owning records of a document for the access evaluator.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.classes = Collection(db, Class)
        self.students = Collection(db, Student)
        self.report_cards = Collection(db, ReportCard)
        self.slips = Collection(db, PermissionSlip)
        self.events = Collection(db, CalendarEvent)
        self.conversations = Collection(db, Conversation)
        self.messages = Collection(db, Message)

    async def check(self, principal: Principal, ref: DocumentRef) -> AccessDecision:
        """Resolve a reference and evaluate access to it."""
        decision = can_view(principal, await self.resolve(ref))
        logger.debug(
            "Access %s to %s %s for %s",
            decision.value,
            ref.kind.value,
            ref.id,
            principal.subject_id,
        )
        return decision

    async def resolve(self, ref: DocumentRef) -> DocumentContext | None:
        """Resolve a reference, or return None if the document does not exist."""
        match ref.kind:
            case DocumentKind.REPORT_CARD:
                card = await self.report_cards.find_one({"id": ref.id})
                return await self.report_card_context(card) if card else None
            case DocumentKind.PERMISSION_SLIP:
                slip = await self.slips.find_one({"id": ref.id})
                return await self.slip_context(slip) if slip else None
            case DocumentKind.PERMISSION_FORM:
                event = await self.events.find_one({"id": ref.id})
                return await self.form_context(event) if event else None
            case DocumentKind.CONVERSATION:
                conversation = await self.conversations.find_one({"id": ref.id})
                return self.conversation_context(conversation) if conversation else None
            case DocumentKind.MESSAGE:
                message = await self.messages.find_one({"id": ref.id})
                if message is None:
                    return None
                conversation = await self.conversations.find_one({"id": message.conversation_id})
                return self.conversation_context(conversation) if conversation else None
        return None

    async def report_card_context(self, card: ReportCard) -> ReportCardContext:
        """Build the context of a report card from its student and classes."""
        student = await self.students.find_one({"id": card.student_id})
        classes = (
            await self.classes.find({"student_ids": student.id, "school_id": student.school_id})
            if student
            else []
        )
        return ReportCardContext(
            teacher_id=card.teacher_id,
            status=card.status,
            guardian_ids=frozenset(student.guardian_ids or []) if student else frozenset(),
            class_teacher_ids=frozenset(t for c in classes for t in (c.teacher_ids or [])),
        )

    async def slip_context(self, slip: PermissionSlip) -> PermissionSlipContext:
        """Build the context of a permission slip from its class."""
        return PermissionSlipContext(
            guardian_id=slip.guardian_id,
            class_teacher_ids=await self._class_teachers(slip.class_id),
        )

    async def form_context(self, event: CalendarEvent) -> PermissionFormContext:
        """Build the context of an event's form template from its class."""
        return PermissionFormContext(class_teacher_ids=await self._class_teachers(event.class_id))

    @staticmethod
    def conversation_context(conversation: Conversation) -> ConversationContext:
        """Build the context of a conversation."""
        return ConversationContext(participant_ids=frozenset(conversation.participant_ids or []))

    async def _class_teachers(self, class_id: str | None) -> frozenset[str]:
        if class_id is None:
            return frozenset()
        cls = await self.classes.find_one({"id": class_id})
        return frozenset(cls.teacher_ids or []) if cls else frozenset()
