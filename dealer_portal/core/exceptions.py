"""
Platform-wide exception hierarchy.

Services raise these types; the warranty service converts them into
structured ``{"success": False, ...}`` results, and blueprints map the
result codes to HTTP statuses once.

Usage:
    from dealer_portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="WarrantyClaim", resource_id=claim_id)
    raise ValidationError("Product name is required", details={"product_name": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the caller's scope.

    Security note: Used for BOTH genuinely missing records AND records owned
    by another dealer.  A 403 would confirm the resource exists; a 404 does not.

    Args:
        resource: Human-readable model/entity name (e.g. "WarrantyClaim").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing, malformed, or out of range.

    Always raised before any write, so no partial state survives it.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class TransitionError(Exception):
    """Raised when an action is not permitted from the claim's current status."""

    def __init__(self, claim_number: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' warranty claim {claim_number} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.claim_number = claim_number
        self.action = action
        self.current_status = current
        self.reason = reason


class AuthorizationError(Exception):
    """Raised when the actor lacks the role or ownership a mutation requires."""

    def __init__(self, user_id: str | None, action: str, reason: str | None = None):
        msg = reason or f"User {user_id} is not authorized to '{action}' this claim"
        super().__init__(msg)
        self.user_id = user_id
        self.action = action


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
