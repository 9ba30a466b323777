# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation API endpoints.

This module provides endpoints for teacher-guardian messaging:
- POST / - Open (or get) a thread with a student's guardian (teacher)
- GET / - List the caller's threads
- GET /{conversation_id}/messages - Read a thread (participants only)
- POST /{conversation_id}/messages - Post to a thread (participants only)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_principal, require_teacher
from src.core.exceptions import InvalidInputError, NotFoundError
from src.core.principal import Principal
from src.domains.conversation import ConversationService
from src.models.conversation import (
    ConversationResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    StartConversationRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_service(db: AsyncSession) -> ConversationService:
    """Get conversation service instance."""
    return ConversationService(db=db)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Conversation not found",
    )


@router.post(
    "",
    response_model=ConversationResponse,
    summary="Start conversation",
)
async def start_conversation(
    data: StartConversationRequest,
    principal: Principal = Depends(require_teacher),
    db: AsyncSession = Depends(get_db),
) -> ConversationResponse:
    """Get or create the thread with a guardian about a student."""
    service = _get_service(db)

    try:
        return await service.get_or_create_conversation(
            principal.subject_id,
            data.guardian_id,
            data.student_id,
        )
    except NotFoundError:
        raise _not_found()


@router.get(
    "",
    response_model=list[ConversationResponse],
    summary="List conversations",
)
async def list_conversations(
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> list[ConversationResponse]:
    """List the caller's conversations."""
    return await _get_service(db).list_conversations(principal.subject_id)


@router.get(
    "/{conversation_id}/messages",
    response_model=MessageListResponse,
    summary="Get messages",
)
async def get_messages(
    conversation_id: str,
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> MessageListResponse:
    """Read a conversation, oldest message first."""
    service = _get_service(db)

    try:
        return await service.get_messages(principal, conversation_id)
    except NotFoundError:
        raise _not_found()


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
async def send_message(
    conversation_id: str,
    data: SendMessageRequest,
    principal: Principal = Depends(require_principal),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Post a message to a conversation."""
    service = _get_service(db)

    try:
        return await service.send_message(principal.subject_id, conversation_id, data.body)
    except NotFoundError:
        raise _not_found()
    except InvalidInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )
