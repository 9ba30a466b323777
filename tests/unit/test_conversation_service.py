# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for teacher-guardian conversations."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.principal import Principal, Role
from src.domains.conversation import (
    ConversationNotFoundError,
    ConversationService,
    InvalidMessageError,
)
from src.domains.membership import MembershipService


@pytest.fixture
def conversations(db: AsyncSession) -> ConversationService:
    return ConversationService(db)


@pytest_asyncio.fixture
async def student_id(db: AsyncSession, classroom, parent, add_students) -> str:
    (student_id,) = await add_students(classroom.id, "Emma Wilson")
    await MembershipService(db).link_guardian_to_student(student_id, parent)
    return student_id


class TestStartConversation:
    """Tests for get_or_create_conversation."""

    @pytest.mark.asyncio
    async def test_is_idempotent(self, conversations, teacher, parent, student_id) -> None:
        first = await conversations.get_or_create_conversation(teacher, parent, student_id)
        second = await conversations.get_or_create_conversation(teacher, parent, student_id)

        assert first.id == second.id
        assert first.participant_ids == sorted([teacher, parent])
        assert first.teacher_id == teacher

    @pytest.mark.asyncio
    async def test_guardian_must_be_linked(
        self, conversations, teacher, other_parent, student_id
    ) -> None:
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_or_create_conversation(teacher, other_parent, student_id)

    @pytest.mark.asyncio
    async def test_teacher_must_teach_student(
        self, conversations, other_teacher, parent, student_id
    ) -> None:
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_or_create_conversation(other_teacher, parent, student_id)


class TestMessages:
    """Tests for sending and reading messages."""

    @pytest.mark.asyncio
    async def test_send_and_read(self, conversations, teacher, parent, student_id) -> None:
        conversation = await conversations.get_or_create_conversation(teacher, parent, student_id)

        await conversations.send_message(teacher, conversation.id, "  Field trip on Friday ")
        reply = await conversations.send_message(parent, conversation.id, "Thanks!")

        assert reply.is_from_teacher is False
        thread = await conversations.get_messages(
            Principal(subject_id=parent, role=Role.PARENT),
            conversation.id,
        )
        assert thread.total == 2
        assert [m.body for m in thread.messages] == ["Field trip on Friday", "Thanks!"]
        assert thread.messages[0].is_from_teacher is True

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self, conversations, teacher, parent, student_id) -> None:
        conversation = await conversations.get_or_create_conversation(teacher, parent, student_id)

        with pytest.raises(InvalidMessageError):
            await conversations.send_message(teacher, conversation.id, "   ")

    @pytest.mark.asyncio
    async def test_outsider_sees_not_found(
        self, conversations, teacher, parent, other_parent, student_id
    ) -> None:
        conversation = await conversations.get_or_create_conversation(teacher, parent, student_id)

        with pytest.raises(ConversationNotFoundError):
            await conversations.send_message(other_parent, conversation.id, "Hello")
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_messages(
                Principal(subject_id=other_parent, role=Role.PARENT),
                conversation.id,
            )
        with pytest.raises(ConversationNotFoundError):
            await conversations.get_messages(
                Principal(subject_id=parent, role=Role.PARENT),
                "missing",
            )

    @pytest.mark.asyncio
    async def test_list_conversations(
        self, conversations, teacher, parent, other_parent, student_id
    ) -> None:
        conversation = await conversations.get_or_create_conversation(teacher, parent, student_id)

        assert [c.id for c in await conversations.list_conversations(parent)] == [conversation.id]
        assert [c.id for c in await conversations.list_conversations(teacher)] == [conversation.id]
        assert await conversations.list_conversations(other_parent) == []
