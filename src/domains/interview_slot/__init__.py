# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Interview slot domain package.

This package provides parent-teacher interview scheduling:
- InterviewSlotService: slot creation, bookings, claims and listings
- Exceptions: Interview slot error types
"""

from src.domains.interview_slot.service import (
    MAX_SLOTS_PER_REQUEST,
    InterviewClassNotFoundError,
    InterviewSlotNotFoundError,
    InterviewSlotService,
    InterviewSlotServiceError,
    InvalidInterviewSlotError,
    SlotTakenError,
)

__all__ = [
    "InterviewSlotService",
    "InterviewSlotServiceError",
    "InterviewClassNotFoundError",
    "InterviewSlotNotFoundError",
    "InvalidInterviewSlotError",
    "SlotTakenError",
    "MAX_SLOTS_PER_REQUEST",
]
