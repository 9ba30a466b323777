# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class, roster and membership schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ClassCreateRequest(BaseModel):
    """Request to create a school and its first class."""

    school_name: str = Field(..., min_length=1, max_length=100)
    class_name: str = Field(..., min_length=1, max_length=100)
    term: str = Field(..., min_length=1, max_length=50)


class JoinClassRequest(BaseModel):
    """Request to join a class by its code."""

    code: str = Field(..., min_length=1, max_length=20, description="Class join code")


class ClassResponse(BaseModel):
    """Class details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    name: str
    term: str
    code: str | None = None
    teacher_ids: list[str] = Field(default_factory=list)
    student_count: int = 0
    guardian_count: int = 0
    created_at: datetime | None = None


class StudentResponse(BaseModel):
    """Student details."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    school_id: str
    name: str
    grade: str
    guardian_ids: list[str] = Field(default_factory=list)
    class_ids: list[str] = Field(default_factory=list)


class AddStudentsRequest(BaseModel):
    """Request to add new students to a class by name."""

    names: list[str] = Field(..., min_length=1)
    grade: str = Field(default="", max_length=20)


class AddStudentsResponse(BaseModel):
    """Students created by an add request."""

    student_ids: list[str]
    count: int


class RosterEntryRequest(BaseModel):
    """One student of a replacement roster."""

    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(default="", max_length=20)


class ReplaceRosterRequest(BaseModel):
    """Request to replace a class roster."""

    students: list[RosterEntryRequest] = Field(default_factory=list)


class RosterResponse(BaseModel):
    """Outcome of a roster replacement."""

    student_ids: list[str]
    created: int
    removed: int
    deleted: int


class RemoveStudentResponse(BaseModel):
    """Outcome of removing a student from a class."""

    student_id: str
    class_id: str
    student_deleted: bool


class GuardianLinkRequest(BaseModel):
    """Request to link a class guardian to a student."""

    guardian_id: str = Field(..., min_length=1, max_length=255)


class ReconcileResponse(BaseModel):
    """Repairs made by a class reconciliation."""

    class_id: str
    completed: list[str]
    dropped: list[str]
    detached: list[str]
    deleted: list[str]
    guardians_dropped: list[str]
    changed: bool
