# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Document retrieval package.

This package delivers protected documents:
- DocumentRetrievalService: access-checked payload retrieval
- DocumentPayload, Disposition: what the delivery layer sends
- Filename helpers and PDF payload validation
"""

from src.domains.documents.payload import InvalidDocumentError, validate_pdf_payload
from src.domains.documents.service import (
    Disposition,
    DocumentPayload,
    DocumentRetrievalService,
    permission_form_filename,
    permission_slip_filename,
    report_card_filename,
    sanitize_filename_part,
)

__all__ = [
    "DocumentRetrievalService",
    "DocumentPayload",
    "Disposition",
    "InvalidDocumentError",
    "validate_pdf_payload",
    "sanitize_filename_part",
    "report_card_filename",
    "permission_slip_filename",
    "permission_form_filename",
]
