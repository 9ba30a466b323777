# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class code package.

This package issues and resolves class join codes:
- ClassCodeRegistry: generate, claim, resolve and join by code
- normalize_code: trim and upper-case typed code text
- Exceptions: Code-related error types
"""

from src.domains.class_code.service import (
    ClassCodeError,
    ClassCodeExhaustedError,
    ClassCodeNotFoundError,
    ClassCodeRegistry,
    InvalidClassCodeError,
    normalize_code,
)

__all__ = [
    "ClassCodeRegistry",
    "ClassCodeError",
    "ClassCodeNotFoundError",
    "InvalidClassCodeError",
    "ClassCodeExhaustedError",
    "normalize_code",
]
