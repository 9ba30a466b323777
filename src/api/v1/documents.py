# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Document download API endpoints.

This module provides the download boundary for protected documents:
- GET /report-cards/{report_card_id}/download - Report card PDF
- GET /permission-slips/{slip_id}/download - Signed slip or blank form
- GET /events/{event_id}/permission-form - Blank form preview (teacher)

Pass preview=1 (or inline=1) to get an inline disposition instead of an
attachment. A document the caller may not see is reported exactly like
one that does not exist; the one exception is a guardian asking for their
own student's report card before it is published.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_principal
from src.core.exceptions import ForbiddenError, NotFoundError
from src.core.principal import Principal
from src.domains.documents import DocumentPayload, DocumentRetrievalService

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> DocumentRetrievalService:
    """Get document retrieval service instance."""
    return DocumentRetrievalService(db=db)


def _to_response(document: DocumentPayload) -> Response:
    """Build the HTTP response for a cleared document."""
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": document.content_disposition},
    )


def _wants_inline(preview: str | None, inline: str | None) -> bool:
    return preview == "1" or inline == "1"


@router.get(
    "/report-cards/{report_card_id}/download",
    summary="Download report card",
    responses={403: {"description": "Report card not yet published"}},
)
async def download_report_card(
    report_card_id: str,
    preview: str | None = Query(None, description="1 for inline display"),
    inline: str | None = Query(None, description="1 for inline display"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download a report card PDF."""
    service = _get_service(db)

    try:
        document = await service.get_report_card(
            principal,
            report_card_id,
            inline=_wants_inline(preview, inline),
        )
    except ForbiddenError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Report card not yet published",
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report card not found",
        )

    return _to_response(document)


@router.get(
    "/permission-slips/{slip_id}/download",
    summary="Download permission slip",
)
async def download_permission_slip(
    slip_id: str,
    preview: str | None = Query(None, description="1 for inline display"),
    inline: str | None = Query(None, description="1 for inline display"),
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Download a signed permission slip, or the blank form before signing."""
    service = _get_service(db)

    try:
        document = await service.get_permission_slip(
            principal,
            slip_id,
            inline=_wants_inline(preview, inline),
        )
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Permission slip not found",
        )

    return _to_response(document)


@router.get(
    "/events/{event_id}/permission-form",
    summary="Preview permission form",
)
async def preview_permission_form(
    event_id: str,
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """Preview an event's blank permission form. Teachers of the class only."""
    service = _get_service(db)

    try:
        document = await service.get_permission_form_preview(principal, event_id)
    except NotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Permission form not found",
        )

    return _to_response(document)
