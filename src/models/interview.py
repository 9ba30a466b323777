# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interview slot schemas.

Teachers see who holds each slot. Guardians only see whether a slot is
taken and which slot each of their children holds.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class InterviewSlotTime(BaseModel):
    """Start and end of one slot."""

    start_at: datetime
    end_at: datetime


class InterviewSlotsCreateRequest(BaseModel):
    """Request to open slots on a class."""

    class_id: str = Field(..., min_length=1, max_length=36)
    slots: list[InterviewSlotTime] = Field(..., min_length=1)


class BookSlotRequest(BaseModel):
    """Teacher booking on behalf of a guardian without an account."""

    student_id: str = Field(..., min_length=1, max_length=36)
    guardian_name: str = Field(..., min_length=1, max_length=100)
    guardian_email: str | None = Field(default=None, max_length=255)


class ClaimSlotRequest(BaseModel):
    """Guardian claiming a slot for one of their children."""

    student_id: str = Field(..., min_length=1, max_length=36)


class InterviewSlotResponse(BaseModel):
    """Slot details as seen by the class teacher."""

    id: str
    class_id: str
    start_at: datetime
    end_at: datetime
    is_claimed: bool
    student_id: str | None = None
    student_name: str | None = None
    guardian_id: str | None = None
    guardian_name: str | None = None
    guardian_email: str | None = None


class TeacherInterviewClass(BaseModel):
    """A taught class and its slots."""

    class_id: str
    class_name: str
    slots: list[InterviewSlotResponse]


class GuardianSlotResponse(BaseModel):
    """Slot details as seen by a guardian."""

    id: str
    start_at: datetime
    end_at: datetime
    is_claimed: bool
    claimed_by_me: bool = False


class GuardianInterviewChild(BaseModel):
    """One of the guardian's children in the class."""

    student_id: str
    name: str
    claimed_slot_id: str | None = None


class GuardianInterviewClass(BaseModel):
    """A joined class, its slots and the guardian's children in it."""

    class_id: str
    class_name: str
    school_name: str | None = None
    children: list[GuardianInterviewChild]
    slots: list[GuardianSlotResponse]


class CreatedSlotsResponse(BaseModel):
    """Outcome of opening slots."""

    class_id: str
    created: int
