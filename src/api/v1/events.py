# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Event and permission slip API endpoints.

This module provides endpoints for class events and their slips:
- POST /events - Create an event (teacher)
- PATCH /events/{event_id} - Edit an event (teacher)
- DELETE /events/{event_id} - Delete an event and its slips (teacher)
- PUT /events/{event_id}/permission-form - Upload the blank form (teacher)
- POST /events/{event_id}/send - Send unsent slips (teacher)
- PUT /events/{event_id}/permission-slips/{guardian_id} - Record a signed
  slip handed in by a guardian (teacher)
- GET /permission-slips - List the caller's slips (parent)
- POST /permission-slips/{slip_id}/sign - Submit a signed slip (parent)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_parent, require_teacher
from src.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from src.core.principal import Principal
from src.domains.permission_slip import PermissionSlipService
from src.models.documents import (
    DeletedEventResponse,
    DocumentUploadRequest,
    EventCreateRequest,
    EventResponse,
    EventUpdateRequest,
    PermissionSlipResponse,
    SentSlipsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> PermissionSlipService:
    """Get permission slip service instance."""
    return PermissionSlipService(db=db)


@router.post(
    "/events",
    response_model=EventResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create event",
)
async def create_event(
    data: EventCreateRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> EventResponse:
    """Create an event; slip-gated events get a slip per class guardian."""
    service = _get_service(db)

    try:
        event = await service.create_event(
            teacher_id=principal.subject_id,
            class_id=data.class_id,
            title=data.title,
            requires_permission_slip=data.requires_permission_slip,
            permission_form=data.permission_form,
            description=data.description,
            start_at=data.start_at,
            end_at=data.end_at,
            due_date=data.due_date,
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return EventResponse.model_validate(event)


@router.patch(
    "/events/{event_id}",
    response_model=EventResponse,
    summary="Update event",
)
async def update_event(
    event_id: str,
    request: EventUpdateRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> EventResponse:
    """Update the fields sent; toggling the slip requirement adds or drops slips."""
    service = _get_service(db)

    try:
        updates = request.model_dump(exclude_unset=True)
        event = await service.update_event(principal.subject_id, event_id, **updates)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return EventResponse.model_validate(event)


@router.delete(
    "/events/{event_id}",
    response_model=DeletedEventResponse,
    summary="Delete event",
)
async def delete_event(
    event_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> DeletedEventResponse:
    """Delete an event and every slip issued for it."""
    service = _get_service(db)

    try:
        deleted = await service.delete_event(principal.subject_id, event_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )

    return DeletedEventResponse(event_id=event_id, deleted_slips=deleted)


@router.put(
    "/events/{event_id}/permission-form",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Upload permission form",
)
async def upload_permission_form(
    event_id: str,
    data: DocumentUploadRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Attach the blank permission form to an event."""
    service = _get_service(db)

    try:
        await service.upload_permission_form(principal.subject_id, event_id, data.payload)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )


@router.post(
    "/events/{event_id}/send",
    response_model=SentSlipsResponse,
    summary="Send permission slips",
)
async def send_permission_slips(
    event_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> SentSlipsResponse:
    """Send every unsent slip of an event."""
    service = _get_service(db)

    try:
        sent = await service.send_permission_slips(principal.subject_id, event_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Event not found",
        )

    return SentSlipsResponse(event_id=event_id, sent=sent)


@router.put(
    "/events/{event_id}/permission-slips/{guardian_id}",
    response_model=PermissionSlipResponse,
    summary="Record signed permission slip",
)
async def upload_slip_for_guardian(
    event_id: str,
    guardian_id: str,
    data: DocumentUploadRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> PermissionSlipResponse:
    """Store a signed slip a guardian returned on paper."""
    service = _get_service(db)

    try:
        slip = await service.upload_slip_for_guardian(
            teacher_id=principal.subject_id,
            event_id=event_id,
            guardian_id=guardian_id,
            payload=data.payload,
        )
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.message,
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )

    return PermissionSlipResponse.model_validate(slip)


@router.get(
    "/permission-slips",
    response_model=list[PermissionSlipResponse],
    summary="List my permission slips",
)
async def list_permission_slips(
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> list[PermissionSlipResponse]:
    """List the calling parent's slips."""
    slips = await _get_service(db).list_slips_for_guardian(principal.subject_id)
    return [PermissionSlipResponse.model_validate(s) for s in slips]


@router.post(
    "/permission-slips/{slip_id}/sign",
    response_model=PermissionSlipResponse,
    summary="Sign permission slip",
)
async def sign_permission_slip(
    slip_id: str,
    data: DocumentUploadRequest,
    principal: Principal = Depends(require_parent),
    db: AsyncSession = Depends(get_db),
) -> PermissionSlipResponse:
    """Submit the signed PDF for a sent slip."""
    service = _get_service(db)

    try:
        slip = await service.sign_permission_slip(principal.subject_id, slip_id, data.payload)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Permission slip not found",
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )

    return PermissionSlipResponse.model_validate(slip)
