# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Permission slip domain package.

This package provides calendar events and permission slips:
- PermissionSlipService: events, slip creation and slip transitions
- Exceptions: Event and slip error types
"""

from src.domains.permission_slip.service import (
    EventNotFoundError,
    InvalidEventError,
    PermissionSlipService,
    PermissionSlipServiceError,
    SlipConflictError,
    SlipNotFoundError,
)

__all__ = [
    "PermissionSlipService",
    "PermissionSlipServiceError",
    "EventNotFoundError",
    "SlipNotFoundError",
    "InvalidEventError",
    "SlipConflictError",
]
