# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""PDF payload checks shared by slip, form and report card uploads."""

from src.core.config import DocumentSettings, get_settings
from src.core.exceptions import InvalidInputError

PDF_MAGIC = b"%PDF-"


class InvalidDocumentError(InvalidInputError):
    """Raised when an uploaded payload is missing, too large or not a PDF."""

    pass


def validate_pdf_payload(
    payload: bytes | None,
    settings: DocumentSettings | None = None,
) -> bytes:
    """Check that a payload is a PDF of acceptable size.

    Args:
        payload: Uploaded bytes.
        settings: Payload limits; defaults to the application settings.

    Returns:
        The payload, unchanged.

    Raises:
        InvalidDocumentError: If the payload fails any check.
    """
    settings = settings or get_settings().documents

    if not payload:
        raise InvalidDocumentError("Please upload a PDF file")
    if len(payload) > settings.max_payload_bytes:
        raise InvalidDocumentError(
            "PDF is too large",
            {"size": len(payload), "max": settings.max_payload_bytes},
        )
    if len(payload) < settings.min_payload_bytes or not payload.startswith(PDF_MAGIC):
        raise InvalidDocumentError("File must be a PDF")
    return payload
