# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    classes: Class creation, joining and roster endpoints.
    events: Calendar events and permission slip endpoints.
    report_cards: Report card lifecycle endpoints.
    documents: Access-checked document downloads.
    conversations: Teacher-guardian messaging endpoints.
    interview_slots: Parent-teacher interview scheduling endpoints.
"""

from fastapi import APIRouter

from src.api.v1 import (
    classes,
    conversations,
    documents,
    events,
    interview_slots,
    report_cards,
)

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(classes.router, prefix="/classes", tags=["Classes"])
router.include_router(events.router, tags=["Events"])
router.include_router(report_cards.router, prefix="/report-cards", tags=["Report Cards"])
router.include_router(documents.router, tags=["Documents"])
router.include_router(conversations.router, prefix="/conversations", tags=["Conversations"])
router.include_router(
    interview_slots.router,
    prefix="/interview-slots",
    tags=["Interview Slots"],
)

__all__ = ["router"]
