# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access control evaluator for protected documents.

can_view() is a pure decision over a principal and the resolved context
of one document. Rules, first match wins:

1. Unresolved document -> NOT_FOUND.
2. Report card: the card's teacher or a teacher of a class containing the
   student -> ALLOW. A guardian of the student -> ALLOW when published,
   otherwise FORBIDDEN.
3. Permission slip: the slip's guardian or a teacher of the slip's class
   -> ALLOW.
4. Permission form template: a teacher of the event's class -> ALLOW.
5. Conversation: one of its two participants -> ALLOW.
6. Anyone else -> NOT_FOUND.

FORBIDDEN is only ever returned to the student's own guardian waiting on
publication. Everyone else gets NOT_FOUND whether or not the document
exists, so identifiers cannot be enumerated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from src.core.exceptions import (
    ForbiddenError,
    NotAuthenticatedError,
    NotFoundError,
)
from src.core.principal import Principal
from src.domains.lifecycle import ReportCardStatus


class AccessDecision(str, Enum):
    """Outcome of an access check."""

    ALLOW = "allow"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class ReportCardContext:
    """What the evaluator needs to know about a report card."""

    teacher_id: str
    status: str
    guardian_ids: frozenset[str]
    class_teacher_ids: frozenset[str]


@dataclass(frozen=True)
class PermissionSlipContext:
    """What the evaluator needs to know about a permission slip."""

    guardian_id: str
    class_teacher_ids: frozenset[str]


@dataclass(frozen=True)
class PermissionFormContext:
    """What the evaluator needs to know about an event's form template."""

    class_teacher_ids: frozenset[str]


@dataclass(frozen=True)
class ConversationContext:
    """What the evaluator needs to know about a conversation or message."""

    participant_ids: frozenset[str]


DocumentContext = Union[
    ReportCardContext,
    PermissionSlipContext,
    PermissionFormContext,
    ConversationContext,
]


class DocumentNotFoundError(NotFoundError):
    """Raised when a document is absent or must look absent to the caller."""

    pass


class DocumentNotAvailableError(ForbiddenError):
    """Raised when a guardian asks for their student's unpublished report card."""

    pass


def can_view(principal: Principal, document: DocumentContext | None) -> AccessDecision:
    """Decide whether a principal may view a document.

    Args:
        principal: Identity making the request.
        document: Resolved document context, or None if it does not exist.

    Returns:
        The access decision.

    Raises:
        NotAuthenticatedError: If no principal is given.
    """
    if principal is None:
        raise NotAuthenticatedError("Authentication required")

    subject = principal.subject_id

    match document:
        case None:
            return AccessDecision.NOT_FOUND

        case ReportCardContext():
            if principal.is_teacher and (
                subject == document.teacher_id or subject in document.class_teacher_ids
            ):
                return AccessDecision.ALLOW
            if principal.is_parent and subject in document.guardian_ids:
                if document.status == ReportCardStatus.PUBLISHED.value:
                    return AccessDecision.ALLOW
                return AccessDecision.FORBIDDEN
            return AccessDecision.NOT_FOUND

        case PermissionSlipContext():
            if principal.is_parent and subject == document.guardian_id:
                return AccessDecision.ALLOW
            if principal.is_teacher and subject in document.class_teacher_ids:
                return AccessDecision.ALLOW
            return AccessDecision.NOT_FOUND

        case PermissionFormContext():
            if principal.is_teacher and subject in document.class_teacher_ids:
                return AccessDecision.ALLOW
            return AccessDecision.NOT_FOUND

        case ConversationContext():
            if subject in document.participant_ids:
                return AccessDecision.ALLOW
            return AccessDecision.NOT_FOUND

    return AccessDecision.NOT_FOUND


def enforce(principal: Principal, document: DocumentContext | None) -> None:
    """Raise unless the principal may view the document.

    Raises:
        NotAuthenticatedError: If no principal is given.
        DocumentNotFoundError: For NOT_FOUND decisions.
        DocumentNotAvailableError: For FORBIDDEN decisions.
    """
    decision = can_view(principal, document)
    if decision is AccessDecision.FORBIDDEN:
        raise DocumentNotAvailableError("This document is not available yet")
    if decision is not AccessDecision.ALLOW:
        raise DocumentNotFoundError("Not found")
