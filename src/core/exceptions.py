# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Error taxonomy shared by every SchoolConnect service.

Each domain service declares its own error classes; they inherit from one
of the kinds below so callers can handle a whole kind at once:

- SchoolConnectError: Base exception for all service errors
- NotAuthenticatedError: No principal was supplied
- NotFoundError: Entity absent, or deliberately indistinguishable from
  forbidden so the caller cannot test for existence
- ForbiddenError: The document exists and the caller is a legitimate
  party, but it is not available to them yet
- InvalidInputError: Malformed identifier, invalid role, missing field
- ConflictError: A conditional write lost a race it could not recover from
- UnavailableError: The persistence layer cannot be reached
"""


class SchoolConnectError(Exception):
    """Base exception for all SchoolConnect errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class NotAuthenticatedError(SchoolConnectError):
    """Raised when a request arrives without a principal."""

    pass


class NotFoundError(SchoolConnectError):
    """Raised when an entity or document is absent or must look absent."""

    pass


class ForbiddenError(SchoolConnectError):
    """Raised when a legitimate party asks for a document not yet released."""

    pass


class InvalidInputError(SchoolConnectError):
    """Raised for malformed identifiers, invalid roles or missing fields."""

    pass


class ConflictError(SchoolConnectError):
    """Raised when a conditional write keeps losing to concurrent writers."""

    pass


class UnavailableError(SchoolConnectError):
    """Raised when the persistence layer is unreachable.

    Must never be reported to callers as "not found".
    """

    pass
