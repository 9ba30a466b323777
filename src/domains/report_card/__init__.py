# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Report card domain package.

This package provides report card functionality:
- ReportCardService: draft, publish, unpublish and listings
- Exceptions: Report card error types
"""

from src.domains.report_card.service import (
    InvalidReportCardError,
    ReportCardExistsError,
    ReportCardNotFoundError,
    ReportCardService,
    ReportCardServiceError,
)

__all__ = [
    "ReportCardService",
    "ReportCardServiceError",
    "ReportCardNotFoundError",
    "ReportCardExistsError",
    "InvalidReportCardError",
]
