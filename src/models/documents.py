# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event, permission slip and report card schemas.

Uploaded documents travel as base64 in JSON bodies.
"""

from datetime import date, datetime

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field


class EventCreateRequest(BaseModel):
    """Request to create a class event."""

    class_id: str = Field(..., min_length=1, max_length=36)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    start_at: datetime | None = None
    end_at: datetime | None = None
    due_date: date | None = Field(default=None, description="Date slips are due back")
    requires_permission_slip: bool = False
    permission_form: Base64Bytes | None = Field(
        default=None,
        description="Blank permission form PDF, base64 encoded",
    )


class EventUpdateRequest(BaseModel):
    """Request to update an event; only the fields sent are changed."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    start_at: datetime | None = None
    end_at: datetime | None = None
    due_date: date | None = None
    requires_permission_slip: bool | None = None


class EventResponse(BaseModel):
    """Event details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    class_id: str | None
    title: str
    description: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    due_date: date | None = None
    requires_permission_slip: bool
    created_at: datetime | None = None


class DeletedEventResponse(BaseModel):
    """Outcome of deleting an event."""

    event_id: str
    deleted_slips: int


class DocumentUploadRequest(BaseModel):
    """A PDF upload."""

    payload: Base64Bytes = Field(..., description="PDF, base64 encoded")


class SentSlipsResponse(BaseModel):
    """Outcome of sending an event's slips."""

    event_id: str
    sent: int


class PermissionSlipResponse(BaseModel):
    """Permission slip details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    event_id: str
    class_id: str
    guardian_id: str
    status: str
    sent_at: datetime | None = None
    signed_at: datetime | None = None


class ReportCardCreateRequest(BaseModel):
    """Request to start a report card."""

    student_id: str = Field(..., min_length=1, max_length=36)
    term: str = Field(..., min_length=1, max_length=50)
    payload: Base64Bytes | None = Field(default=None, description="PDF, base64 encoded")


class ReportCardResponse(BaseModel):
    """Report card details, without the document."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    teacher_id: str
    term: str
    status: str
    published_at: datetime | None = None
    created_at: datetime | None = None
