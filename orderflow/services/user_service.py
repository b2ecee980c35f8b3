"""
User Directory Service — account creation, lookup and profile updates.

Roles never change after creation. An employee's ``agent_id`` must point
at an agent; agents may create employees only under themselves.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from orderflow.core.exceptions import ConflictError, ValidationError
from orderflow.models import db
from orderflow.models.user import USER_ROLES, Role, User
from orderflow.services.notification import NotificationService, notify_safely
from orderflow.services.permission import require_role
from orderflow.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {"name", "phone", "skills", "is_active", "agent_id"}


def _normalise_email(email):
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"}) from e


def _check_agent_reference(role, agent_id):
    if not agent_id:
        return None
    if role != Role.EMPLOYEE.value:
        raise ValidationError("agent_id is only allowed for employees",
                              details={"agent_id": "not_allowed"})
    agent = get_or_raise(User, agent_id, "Agent")
    if agent.role != Role.AGENT.value:
        raise ValidationError(f"User {agent_id} is not an agent", details={"agent_id": "not_agent"})
    return agent


def _clean_skills(skills):
    if skills is None:
        return []
    if not isinstance(skills, (list, tuple)):
        raise ValidationError("skills must be a list of strings", details={"skills": "invalid"})
    return [str(s).strip() for s in skills if str(s).strip()]


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def create_user(actor, *, name, email, role, phone=None, agent_id=None, skills=None) -> User:
    """Create a directory account and send the welcome notification."""
    require_role(actor, Role.ADMIN, Role.AGENT, action="create_user")

    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    if role not in USER_ROLES:
        raise ValidationError(f"Invalid role: {role}", details={"allowed": sorted(USER_ROLES)})

    if actor.is_agent:
        if role != Role.EMPLOYEE.value:
            raise ValidationError("Agents can only create employees", details={"role": "not_allowed"})
        agent_id = actor.id

    email = _normalise_email(email)
    if User.query.filter_by(email=email).first():
        raise ConflictError(f"User with email {email} already exists")

    _check_agent_reference(role, agent_id)

    user = User(
        name=name,
        email=email,
        phone=(phone or "").strip() or None,
        role=role,
        agent_id=agent_id or None,
        skills=_clean_skills(skills),
        is_active=True,
    )
    db.session.add(user)
    commit_or_raise("create user")
    logger.info("User created id=%s role=%s by=%s", user.id, user.role, actor.id)

    notify_safely(NotificationService.notify_user_created, user)
    return user


def get_user(user_id) -> User:
    return get_or_raise(User, user_id, "User")


def list_users(role=None, include_inactive=False):
    """All users, optionally filtered by role, alphabetical by name."""
    q = User.query
    if role:
        if role not in USER_ROLES:
            raise ValidationError(f"Invalid role: {role}", details={"allowed": sorted(USER_ROLES)})
        q = q.filter_by(role=role)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return q.order_by(User.name.asc())


def list_agents():
    return list_users(role=Role.AGENT.value).all()


def list_employees():
    return list_users(role=Role.EMPLOYEE.value).all()


def list_employees_by_agent(agent_id):
    """Active employees supervised by ``agent_id``."""
    return (
        User.query
        .filter_by(role=Role.EMPLOYEE.value, agent_id=agent_id, is_active=True)
        .order_by(User.name.asc())
        .all()
    )


def update_user(actor, user_id, **fields) -> User:
    """Update profile fields. ``role`` and ``email`` are immutable."""
    require_role(actor, Role.ADMIN, action="update_user")
    user = get_user(user_id)

    if "role" in fields and fields["role"] != user.role:
        raise ValidationError("User role cannot be changed", details={"role": "immutable"})
    if "email" in fields and fields["email"] and _normalise_email(fields["email"]) != user.email:
        raise ValidationError("User email cannot be changed", details={"email": "immutable"})

    for key, val in fields.items():
        if key not in _UPDATABLE_FIELDS:
            continue
        if key == "name":
            val = (val or "").strip()
            if not val:
                raise ValidationError("name cannot be empty", details={"name": "required"})
        elif key == "skills":
            val = _clean_skills(val)
        elif key == "agent_id":
            _check_agent_reference(user.role, val)
            val = val or None
        elif key == "is_active" and not isinstance(val, bool):
            raise ValidationError("is_active must be true or false",
                                  details={"is_active": "invalid"})
        setattr(user, key, val)

    commit_or_raise("update user")
    logger.info("User updated id=%s by=%s", user.id, actor.id)
    return user


def deactivate_user(actor, user_id) -> User:
    require_role(actor, Role.ADMIN, action="deactivate_user")
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError("You cannot deactivate your own account")
    user.is_active = False
    commit_or_raise("deactivate user")
    logger.info("User deactivated id=%s by=%s", user.id, actor.id)
    return user
