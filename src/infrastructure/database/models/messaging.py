# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Teacher-guardian conversation threads."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database.models.base import (
    Base,
    IdList,
    IdMixin,
    TimestampMixin,
    VersionMixin,
)
from src.utils.datetime import utc_now


class Conversation(IdMixin, VersionMixin, TimestampMixin, Base):
    """A thread between exactly two participants, optionally about a student."""

    __tablename__ = "conversations"

    school_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    teacher_id: Mapped[str] = mapped_column(String(255), nullable=False)
    participant_ids: Mapped[list[str]] = mapped_column(IdList, nullable=False, default=list)
    student_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class Message(IdMixin, TimestampMixin, Base):
    """A message in a conversation; ordered by created_at."""

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
    )

    conversation_id: Mapped[str] = mapped_column(String(36), nullable=False)
    sender_id: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
