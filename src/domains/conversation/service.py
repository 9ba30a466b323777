# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Teacher-guardian conversation service.

This service manages message threads between a teacher and a guardian
about one student. A thread has exactly two participants, stored sorted,
and only they can read or post to it.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import InvalidInputError, NotFoundError, SchoolConnectError
from src.core.principal import Principal
from src.domains.access import AccessContextResolver, DocumentNotFoundError, enforce
from src.infrastructure.database.collections import Collection
from src.infrastructure.database.models import (
    Class,
    Conversation,
    Message,
    Student,
)
from src.models.conversation import (
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
)
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class ConversationServiceError(SchoolConnectError):
    """Base exception for conversation service errors."""

    pass


class ConversationNotFoundError(ConversationServiceError, NotFoundError):
    """Raised when a conversation is not found or the caller is not in it."""

    pass


class InvalidMessageError(ConversationServiceError, InvalidInputError):
    """Raised when a message body is empty."""

    pass


class ConversationService:
    """Service for teacher-guardian message threads.

    Attributes:
        db: Async database session.
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize the conversation service.

        Args:
            db: Async database session.
        """
        self.db = db
        self.conversations = Collection(db, Conversation)
        self.messages = Collection(db, Message)
        self.students = Collection(db, Student)
        self.classes = Collection(db, Class)
        self.resolver = AccessContextResolver(db)

    async def get_or_create_conversation(
        self,
        teacher_id: str,
        guardian_id: str,
        student_id: str,
    ) -> ConversationResponse:
        """Get the thread between a teacher and guardian about a student.

        Args:
            teacher_id: Teacher identity; must teach the student.
            guardian_id: Guardian identity; must be linked to the student.
            student_id: Student the thread is about.

        Returns:
            The existing or newly created conversation.

        Raises:
            ConversationNotFoundError: If the teacher does not teach the
                student or the guardian is not linked to it.
        """
        student = await self.students.find_one({"id": student_id})
        if student is None:
            raise ConversationNotFoundError(f"Student {student_id} not found")

        teaches = await self.classes.find_one({
            "student_ids": student_id,
            "teacher_ids": teacher_id,
            "school_id": student.school_id,
        })
        if teaches is None:
            raise ConversationNotFoundError(f"Student {student_id} not found")
        if guardian_id not in (student.guardian_ids or []):
            raise ConversationNotFoundError("Guardian is not linked to this student")

        participants = sorted([teacher_id, guardian_id])
        existing = await self.conversations.find_one(
            {"student_id": student_id, "teacher_id": teacher_id},
            where=lambda c: sorted(c.participant_ids or []) == participants,
        )
        if existing is not None:
            return self._to_response(existing)

        conversation = await self.conversations.insert_one({
            "school_id": student.school_id,
            "participant_ids": participants,
            "teacher_id": teacher_id,
            "student_id": student_id,
            "last_message_at": utc_now(),
        })
        logger.info(
            "Created conversation %s between %s and %s about %s",
            conversation.id,
            teacher_id,
            guardian_id,
            student_id,
        )
        return self._to_response(conversation)

    async def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        body: str,
    ) -> MessageResponse:
        """Post a message to a conversation.

        Raises:
            InvalidMessageError: If the body is empty after trimming.
            ConversationNotFoundError: If the sender is not a participant.
        """
        body = (body or "").strip()
        if not body:
            raise InvalidMessageError("Message cannot be empty")

        conversation = await self.conversations.find_one({"id": conversation_id})
        if conversation is None or sender_id not in (conversation.participant_ids or []):
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found")
        teacher_id = conversation.teacher_id

        now = utc_now()
        message = await self.messages.insert_one({
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "body": body,
            "created_at": now,
        })
        await self.conversations.update_one(
            {"id": conversation_id},
            values={"last_message_at": now},
        )

        logger.info("Message %s posted to conversation %s", message.id, conversation_id)
        return self._message_response(message, teacher_id)

    async def get_messages(
        self,
        principal: Principal,
        conversation_id: str,
    ) -> MessageListResponse:
        """Get a conversation's messages, oldest first.

        Raises:
            ConversationNotFoundError: If the conversation does not exist or
                the caller is not a participant.
        """
        conversation = await self.conversations.find_one({"id": conversation_id})
        context = self.resolver.conversation_context(conversation) if conversation else None
        try:
            enforce(principal, context)
        except DocumentNotFoundError as e:
            raise ConversationNotFoundError(f"Conversation {conversation_id} not found") from e

        messages = await self.messages.find(
            {"conversation_id": conversation_id},
            order_by=[Message.created_at.asc()],
        )
        items = [self._message_response(m, conversation.teacher_id) for m in messages]
        return MessageListResponse(
            conversation_id=conversation_id,
            messages=items,
            total=len(items),
        )

    async def list_conversations(self, participant_id: str) -> list[ConversationResponse]:
        """List a participant's conversations, most recent activity first."""
        conversations = await self.conversations.find(
            {"participant_ids": participant_id},
            order_by=[Conversation.last_message_at.desc()],
        )
        return [self._to_response(c) for c in conversations]

    @staticmethod
    def _to_response(conversation: Conversation) -> ConversationResponse:
        return ConversationResponse(
            id=conversation.id,
            participant_ids=list(conversation.participant_ids or []),
            teacher_id=conversation.teacher_id,
            student_id=conversation.student_id,
            last_message_at=ensure_utc(conversation.last_message_at),
        )

    @staticmethod
    def _message_response(message: Message, teacher_id: str) -> MessageResponse:
        return MessageResponse(
            id=message.id,
            conversation_id=message.conversation_id,
            sender_id=message.sender_id,
            body=message.body,
            created_at=ensure_utc(message.created_at),
            is_from_teacher=message.sender_id == teacher_id,
        )
