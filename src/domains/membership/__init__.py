# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Membership graph package.

This package keeps class, student and guardian references reciprocal:
- MembershipService: add/remove/replace operations and reconciliation
- RosterEntry, RosterReplacement, ReconcileReport: operation inputs and results
- Exceptions: Membership error types
"""

from src.domains.membership.service import (
    ClassNotFoundError,
    DEFAULT_GRADE,
    GuardianRoleError,
    InvalidRosterError,
    MembershipService,
    MembershipServiceError,
    ReconcileReport,
    RosterEntry,
    RosterReplacement,
    SchoolMismatchError,
    StudentNotFoundError,
)

__all__ = [
    "MembershipService",
    "MembershipServiceError",
    "ClassNotFoundError",
    "StudentNotFoundError",
    "SchoolMismatchError",
    "GuardianRoleError",
    "InvalidRosterError",
    "RosterEntry",
    "RosterReplacement",
    "ReconcileReport",
    "DEFAULT_GRADE",
]
