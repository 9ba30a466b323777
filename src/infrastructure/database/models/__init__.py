# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the SchoolConnect database."""

from src.infrastructure.database.models.base import Base, new_id
from src.infrastructure.database.models.documents import (
    CalendarEvent,
    PermissionSlip,
    ReportCard,
)
from src.infrastructure.database.models.interview import InterviewSlot
from src.infrastructure.database.models.messaging import Conversation, Message
from src.infrastructure.database.models.school import Class, School, Student
from src.infrastructure.database.models.user import User

__all__ = [
    "Base",
    "new_id",
    "School",
    "Class",
    "Student",
    "User",
    "CalendarEvent",
    "PermissionSlip",
    "ReportCard",
    "InterviewSlot",
    "Conversation",
    "Message",
]
