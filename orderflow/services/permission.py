"""
Role gate for engine operations.

Every service entry point receives the resolved ``Actor`` explicitly and
calls ``require_role`` before touching the database.

Usage:
    from orderflow.services.permission import require_role

    require_role(actor, Role.ADMIN, action="approve_assignment")
"""

from orderflow.core.exceptions import PermissionDenied
from orderflow.models.user import Role


def has_role(actor, *roles) -> bool:
    """Return True if ``actor`` is present and holds one of ``roles``."""
    if actor is None:
        return False
    return actor.role in {Role(r) for r in roles}


def require_role(actor, *roles, action: str = "perform this action"):
    """
    Raise PermissionDenied unless ``actor`` holds one of ``roles``.

    A missing actor (unauthenticated request) is always denied.

    Returns:
        The actor, for chaining.
    """
    if actor is None:
        raise PermissionDenied(None, action, "authentication required")
    if not has_role(actor, *roles):
        needed = " or ".join(Role(r).value for r in roles)
        raise PermissionDenied(actor.id, action, f"requires role {needed}")
    return actor
