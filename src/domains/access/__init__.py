# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access control package.

This package decides who may view protected documents:
- can_view / enforce: pure decision over a principal and document context
- AccessContextResolver: loads the context for a document reference
"""

from src.domains.access.evaluator import (
    AccessDecision,
    ConversationContext,
    DocumentContext,
    DocumentNotAvailableError,
    DocumentNotFoundError,
    PermissionFormContext,
    PermissionSlipContext,
    ReportCardContext,
    can_view,
    enforce,
)
from src.domains.access.resolver import (
    AccessContextResolver,
    DocumentKind,
    DocumentRef,
)

__all__ = [
    "AccessDecision",
    "ReportCardContext",
    "PermissionSlipContext",
    "PermissionFormContext",
    "ConversationContext",
    "DocumentContext",
    "DocumentNotFoundError",
    "DocumentNotAvailableError",
    "can_view",
    "enforce",
    "AccessContextResolver",
    "DocumentKind",
    "DocumentRef",
]
