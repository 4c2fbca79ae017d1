"""
pricedesk/errors.py

Domain error taxonomy.

Every error raised by the workflow layer derives from PricingError so the
app factory can map it to a JSON response in one place. The HTTP status
travels with the class.
"""

from __future__ import annotations


class PricingError(Exception):
    """Base class for all workflow errors."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    default_message = "Request failed."

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(PricingError):
    """A referenced device/user/project/inquiry/category does not exist."""

    status_code = 404
    kind = "not_found"
    default_message = "Record not found."


class ValidationError(PricingError):
    """Malformed input to a mutating operation."""

    status_code = 400
    kind = "validation_error"
    default_message = "Invalid input."


class InvariantViolation(PricingError):
    """A mutation would break a data invariant (e.g. last active admin)."""

    status_code = 409
    kind = "invariant_violation"
    default_message = "Operation would violate a data invariant."


class ConfigurationError(PricingError):
    """The active coefficient set cannot be used (zero divisor)."""

    status_code = 500
    kind = "configuration_error"
    default_message = "Pricing coefficients are misconfigured."


class AuthFailure(PricingError):
    """Bad credentials or inactive account. Never says which."""

    status_code = 401
    kind = "auth_failure"
    default_message = "Invalid username or password."


class AccessDenied(PricingError):
    """The caller's role or ownership does not permit the operation."""

    status_code = 403
    kind = "access_denied"
    default_message = "You do not have permission to perform this action."
