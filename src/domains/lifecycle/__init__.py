# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Document lifecycle package.

This package defines the status enumerations of permission slips and
report cards and the single table of legal transitions between them.
"""

from src.domains.lifecycle.state_machine import (
    InvalidTransitionError,
    MissingPayloadError,
    REPORT_CARD_TRANSITIONS,
    ReportCardStatus,
    SLIP_TRANSITIONS,
    SlipStatus,
    check_report_card_transition,
    check_slip_transition,
)

__all__ = [
    "SlipStatus",
    "ReportCardStatus",
    "SLIP_TRANSITIONS",
    "REPORT_CARD_TRANSITIONS",
    "InvalidTransitionError",
    "MissingPayloadError",
    "check_slip_transition",
    "check_report_card_transition",
]
