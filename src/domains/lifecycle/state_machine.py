# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lifecycle state machines for permission slips and report cards.

Permission slip::

    unsent --send--> sent --sign(payload)--> signed
                                              |  ^
                                              +--+  re-sign overwrites payload

Report card::

    draft --publish (payload required)--> published
      ^                                       |
      +---------------unpublish---------------+

Services never write a status directly; they call the check functions
here and then apply the change with an update conditioned on the status
they checked against.
"""

from enum import Enum

from src.core.exceptions import InvalidInputError


class SlipStatus(str, Enum):
    """Permission slip status."""

    UNSENT = "unsent"
    SENT = "sent"
    SIGNED = "signed"


class ReportCardStatus(str, Enum):
    """Report card status."""

    DRAFT = "draft"
    PUBLISHED = "published"


SLIP_TRANSITIONS: dict[SlipStatus, frozenset[SlipStatus]] = {
    SlipStatus.UNSENT: frozenset({SlipStatus.SENT}),
    SlipStatus.SENT: frozenset({SlipStatus.SIGNED}),
    SlipStatus.SIGNED: frozenset({SlipStatus.SIGNED}),
}

REPORT_CARD_TRANSITIONS: dict[ReportCardStatus, frozenset[ReportCardStatus]] = {
    ReportCardStatus.DRAFT: frozenset({ReportCardStatus.PUBLISHED}),
    ReportCardStatus.PUBLISHED: frozenset({ReportCardStatus.DRAFT}),
}


class InvalidTransitionError(InvalidInputError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        """Initialize the error.

        Args:
            kind: Document kind ("permission_slip" or "report_card").
            current: Status the document is in.
            target: Status that was requested.
        """
        super().__init__(
            f"Cannot move {kind} from {current} to {target}",
            {"kind": kind, "current": current, "target": target},
        )
        self.current = current
        self.target = target


class MissingPayloadError(InvalidInputError):
    """Raised when a transition requires a payload that is absent."""

    pass


def check_slip_transition(
    current: SlipStatus | str,
    target: SlipStatus | str,
    payload: bytes | None = None,
) -> SlipStatus:
    """Validate a permission slip status change.

    Args:
        current: Current status.
        target: Requested status.
        payload: Signed document, required when the target is signed.

    Returns:
        The target status.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
        MissingPayloadError: If signing without a payload.
    """
    current = SlipStatus(current)
    target = SlipStatus(target)

    if target not in SLIP_TRANSITIONS[current]:
        raise InvalidTransitionError("permission_slip", current.value, target.value)

    if target is SlipStatus.SIGNED and not payload:
        raise MissingPayloadError("A signed document is required to sign a permission slip")

    return target


def check_report_card_transition(
    current: ReportCardStatus | str,
    target: ReportCardStatus | str,
    has_payload: bool,
) -> ReportCardStatus:
    """Validate a report card status change.

    Unpublishing is the one backwards step; it hides the card again but
    keeps the stored payload.

    Args:
        current: Current status.
        target: Requested status.
        has_payload: Whether the card has a document attached.

    Returns:
        The target status.

    Raises:
        InvalidTransitionError: If the transition is not allowed.
        MissingPayloadError: If publishing without a payload.
    """
    current = ReportCardStatus(current)
    target = ReportCardStatus(target)

    if target not in REPORT_CARD_TRANSITIONS[current]:
        raise InvalidTransitionError("report_card", current.value, target.value)

    if target is ReportCardStatus.PUBLISHED and not has_payload:
        raise MissingPayloadError("A report card needs a document before it can be published")

    return target
