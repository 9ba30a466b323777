# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report card API endpoints.

This module provides endpoints for the report card lifecycle:
- POST / - Start a draft (teacher)
- GET / - List report cards (teachers: their students; parents: published)
- PUT /{report_card_id}/payload - Replace a draft's document (teacher)
- POST /{report_card_id}/publish - Publish (teacher)
- POST /{report_card_id}/unpublish - Back to draft (teacher)

Downloads live in the documents module.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_principal, require_teacher
from src.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from src.core.principal import Principal
from src.domains.report_card import ReportCardService
from src.models.documents import (
    DocumentUploadRequest,
    ReportCardCreateRequest,
    ReportCardResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> ReportCardService:
    """Get report card service instance."""
    return ReportCardService(db=db)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Report card not found",
    )


@router.post(
    "",
    response_model=ReportCardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create report card",
)
async def create_report_card(
    data: ReportCardCreateRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ReportCardResponse:
    """Start a draft report card for a student and term."""
    service = _get_service(db)

    try:
        card = await service.create_report_card(
            principal.subject_id,
            data.student_id,
            data.term,
            data.payload,
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    except ConflictError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return ReportCardResponse.model_validate(card)


@router.get(
    "",
    response_model=list[ReportCardResponse],
    summary="List report cards",
)
async def list_report_cards(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> list[ReportCardResponse]:
    """List report cards visible to the caller."""
    service = _get_service(db)
    if principal.is_teacher:
        cards = await service.list_report_cards_for_teacher(principal.subject_id)
    else:
        cards = await service.list_published_report_cards_for_guardian(principal.subject_id)
    return [ReportCardResponse.model_validate(c) for c in cards]


@router.put(
    "/{report_card_id}/payload",
    response_model=ReportCardResponse,
    summary="Replace report card document",
)
async def update_report_card_payload(
    report_card_id: str,
    data: DocumentUploadRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ReportCardResponse:
    """Replace the document of a draft report card."""
    service = _get_service(db)

    try:
        card = await service.update_report_card_payload(
            principal.subject_id,
            report_card_id,
            data.payload,
        )
    except NotFoundError:
        raise _not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return ReportCardResponse.model_validate(card)


@router.post(
    "/{report_card_id}/publish",
    response_model=ReportCardResponse,
    summary="Publish report card",
)
async def publish_report_card(
    report_card_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ReportCardResponse:
    """Publish a draft report card to the student's guardians."""
    service = _get_service(db)

    try:
        card = await service.publish_report_card(principal.subject_id, report_card_id)
    except NotFoundError:
        raise _not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return ReportCardResponse.model_validate(card)


@router.post(
    "/{report_card_id}/unpublish",
    response_model=ReportCardResponse,
    summary="Unpublish report card",
)
async def unpublish_report_card(
    report_card_id: str,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ReportCardResponse:
    """Hide a published report card again; the document is kept."""
    service = _get_service(db)

    try:
        card = await service.unpublish_report_card(principal.subject_id, report_card_id)
    except NotFoundError:
        raise _not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return ReportCardResponse.model_validate(card)
