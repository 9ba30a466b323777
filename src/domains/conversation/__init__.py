# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Conversation domain package.

This package provides teacher-guardian messaging:
- ConversationService: threads, messages and participant checks
- Exceptions: Conversation error types
"""

from src.domains.conversation.service import (
    ConversationNotFoundError,
    ConversationService,
    ConversationServiceError,
    InvalidMessageError,
)

__all__ = [
    "ConversationService",
    "ConversationServiceError",
    "ConversationNotFoundError",
    "InvalidMessageError",
]
