# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Principal middleware.

Authentication happens upstream. The identity collaborator in front of
this service forwards the authenticated subject and the role it acts in
as request headers; this middleware turns them into a Principal on
request.state and binds request-scoped logging context.

Example:
    GET /api/v1/report-cards/3f2c.../download
    X-Subject-Id: auth0|64f1c2
    X-Subject-Role: parent
"""

import logging
from typing import Callable
from uuid import uuid4

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.core.exceptions import InvalidInputError
from src.core.principal import Principal
from src.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

SUBJECT_HEADER = "X-Subject-Id"
ROLE_HEADER = "X-Subject-Role"
REQUEST_ID_HEADER = "X-Request-Id"


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Middleware populating request.state.principal.

    Requests without a subject continue with principal = None; endpoints
    that need one reject them. A subject with an unknown role is recorded
    in request.state.principal_error for the dependency layer to report.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response],
    ) -> Response:
        """Process the request and attach the principal.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler.

        Returns:
            HTTP response.
        """
        request.state.principal = None
        request.state.principal_error = None

        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        bind_context(request_id=request_id)

        subject = request.headers.get(SUBJECT_HEADER)
        if subject:
            try:
                principal = Principal.from_values(subject, request.headers.get(ROLE_HEADER))
                request.state.principal = principal
                bind_context(subject_id=principal.subject_id, role=principal.role.value)
            except InvalidInputError as e:
                logger.debug("Rejected principal headers: %s", e.message)
                request.state.principal_error = e.message

        try:
            response = await call_next(request)
        finally:
            clear_context()

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def get_principal(request: Request) -> Principal | None:
    """Get the principal from request state.

    Args:
        request: HTTP request with state.

    Returns:
        Principal or None if none was supplied.
    """
    return getattr(request.state, "principal", None)
