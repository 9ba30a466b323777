# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- PrincipalMiddleware: Reads the upstream-authenticated principal and
  binds request logging context.

Exports:
    PrincipalMiddleware: Principal resolution middleware.
    get_principal: Accessor for the request's principal.
"""

from src.api.middleware.principal import PrincipalMiddleware, get_principal

__all__ = [
    "PrincipalMiddleware",
    "get_principal",
]
