# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interview slot API endpoints.

This module provides endpoints for parent-teacher interview scheduling:
- POST /interview-slots - Open slots on a class (teacher)
- GET /interview-slots/teaching - Slots of every taught class (teacher)
- GET /interview-slots/classes/{class_id} - Slots of one class (teacher)
- DELETE /interview-slots/{slot_id} - Delete a slot (teacher)
- PUT /interview-slots/{slot_id}/booking - Book for a guardian (teacher)
- DELETE /interview-slots/{slot_id}/booking - Clear a booking (teacher)
- GET /interview-slots/mine - Slots of joined classes (parent)
- PUT /interview-slots/{slot_id}/claim - Claim for a child (parent)
- DELETE /interview-slots/{slot_id}/claim - Release a claim (parent)

Conflicts are mapped to 409 by the application error handler.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_parent, require_teacher
from src.core.exceptions import InvalidInputError, NotFoundError
from src.core.principal import Principal
from src.domains.interview_slot import InterviewSlotService
from src.models.interview import (
    BookSlotRequest,
    ClaimSlotRequest,
    CreatedSlotsResponse,
    GuardianInterviewClass,
    InterviewSlotResponse,
    InterviewSlotsCreateRequest,
    TeacherInterviewClass,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> InterviewSlotService:
    """Get interview slot service instance."""
    return InterviewSlotService(db=db)


def _not_found(e: NotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=e.message,
    )


def _bad_request(e: InvalidInputError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=e.message,
    )


@router.post(
    "",
    response_model=CreatedSlotsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open interview slots",
)
async def create_slots(
    data: InterviewSlotsCreateRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> CreatedSlotsResponse:
    """Open up to 100 slots on a class the caller teaches."""
    service = _get_service(db)

    try:
        created = await service.create_slots(
            teacher_id=principal.subject_id,
            class_id=data.class_id,
            times=[(slot.start_at, slot.end_at) for slot in data.slots],
        )
    except NotFoundError as e:
        raise _not_found(e)
    except InvalidInputError as e:
        raise _bad_request(e)

    return CreatedSlotsResponse(class_id=data.class_id, created=created)


@router.get(
    "/teaching",
    response_model=list[TeacherInterviewClass],
    summary="List slots of taught classes",
)
async def list_teaching_slots(
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> list[TeacherInterviewClass]:
    """List each taught class with its slots."""
    return await _get_service(db).list_slots_for_teacher(principal.subject_id)


@router.get(
    "/mine",
    response_model=list[GuardianInterviewClass],
    summary="List slots for my children",
)
async def list_guardian_slots(
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> list[GuardianInterviewClass]:
    """List slots of each joined class where the caller has a child."""
    return await _get_service(db).get_interview_data_for_guardian(principal.subject_id)


@router.get(
    "/classes/{class_id}",
    response_model=list[InterviewSlotResponse],
    summary="List slots of a class",
)
async def list_class_slots(
    class_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> list[InterviewSlotResponse]:
    """List a class's slots in start order."""
    try:
        return await _get_service(db).list_slots_for_class(principal.subject_id, class_id)
    except NotFoundError as e:
        raise _not_found(e)


@router.delete(
    "/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete interview slot",
)
async def delete_slot(
    slot_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a slot, booked or not."""
    try:
        await _get_service(db).delete_slot(principal.subject_id, slot_id)
    except NotFoundError as e:
        raise _not_found(e)


@router.put(
    "/{slot_id}/booking",
    response_model=InterviewSlotResponse,
    summary="Book slot for a guardian",
)
async def book_slot(
    slot_id: str,
    data: BookSlotRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> InterviewSlotResponse:
    """Book a slot for a guardian who has no account."""
    service = _get_service(db)

    try:
        return await service.book_slot(
            teacher_id=principal.subject_id,
            slot_id=slot_id,
            student_id=data.student_id,
            guardian_name=data.guardian_name,
            guardian_email=data.guardian_email,
        )
    except NotFoundError as e:
        raise _not_found(e)
    except InvalidInputError as e:
        raise _bad_request(e)


@router.delete(
    "/{slot_id}/booking",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear slot booking",
)
async def unbook_slot(
    slot_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Clear whoever holds a slot."""
    try:
        await _get_service(db).unbook_slot(principal.subject_id, slot_id)
    except NotFoundError as e:
        raise _not_found(e)


@router.put(
    "/{slot_id}/claim",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Claim interview slot",
)
async def claim_slot(
    slot_id: str,
    data: ClaimSlotRequest,
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Claim a slot for one of the caller's children."""
    try:
        await _get_service(db).claim_slot(principal.subject_id, slot_id, data.student_id)
    except NotFoundError as e:
        raise _not_found(e)
    except InvalidInputError as e:
        raise _bad_request(e)


@router.delete(
    "/{slot_id}/claim",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Release interview slot",
)
async def unclaim_slot(
    slot_id: str,
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Release a slot the caller holds."""
    try:
        await _get_service(db).unclaim_slot(principal.subject_id, slot_id)
    except NotFoundError as e:
        raise _not_found(e)
