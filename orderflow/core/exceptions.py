"""
Service-wide exception hierarchy.

Every engine failure is one of a small closed set of kinds (``ErrorKind``)
carrying a human-readable message. Blueprints never build error responses
by hand for these: a single app-level handler maps the kind to an HTTP
status (see orderflow/__init__.py).

Usage:
    from orderflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Order", resource_id=order_id)
    raise ValidationError("rejection_reason is required", details={"rejection_reason": "empty"})
"""

import enum


class ErrorKind(str, enum.Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    BACKEND = "backend"


class OrderflowError(Exception):
    """Base class. ``kind`` selects the HTTP status, ``str(exc)`` is the detail."""

    kind = ErrorKind.BACKEND

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotFoundError(OrderflowError):
    """Raised when a referenced order, assignment, user or product does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Order", "Assignment").
        resource_id: The id that was looked up.
    """

    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, resource_id: str | int | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(OrderflowError):
    """Raised when input is well-formed but violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    kind = ErrorKind.VALIDATION


class TransitionError(ValidationError):
    """Raised when a state-machine action is not legal from the current status."""

    kind = ErrorKind.CONFLICT

    def __init__(self, entity: str, entity_id: str, action: str, current: str,
                 reason: str | None = None) -> None:
        msg = f"Cannot '{action}' {entity} {entity_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.entity_id = entity_id
        self.action = action
        self.current_status = current
        self.reason = reason


class ConflictError(OrderflowError):
    """Raised on a unique-constraint clash or a stale concurrent write."""

    kind = ErrorKind.CONFLICT


class PermissionDenied(OrderflowError):
    """Raised when the actor's role does not allow the operation."""

    kind = ErrorKind.FORBIDDEN

    def __init__(self, actor_id: str | None, action: str, reason: str | None = None) -> None:
        who = actor_id or "anonymous"
        msg = f"User {who} is not allowed to '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.actor_id = actor_id
        self.action = action


class BackendError(OrderflowError):
    """Raised when the persistence layer itself fails (network, lock, quota)."""

    kind = ErrorKind.BACKEND
