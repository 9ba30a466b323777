# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation and message schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class StartConversationRequest(BaseModel):
    """Request to open a thread with a student's guardian."""

    guardian_id: str = Field(..., min_length=1, max_length=255)
    student_id: str = Field(..., min_length=1, max_length=36)


class SendMessageRequest(BaseModel):
    """Request to post a message."""

    body: str = Field(..., min_length=1, max_length=5000)


class ConversationResponse(BaseModel):
    """Conversation details."""

    id: str
    participant_ids: list[str]
    teacher_id: str
    student_id: str | None = None
    last_message_at: datetime | None = None


class MessageResponse(BaseModel):
    """A message in a conversation."""

    id: str
    conversation_id: str
    sender_id: str
    body: str
    created_at: datetime
    is_from_teacher: bool


class MessageListResponse(BaseModel):
    """Messages of a conversation, oldest first."""

    conversation_id: str
    messages: list[MessageResponse]
    total: int
