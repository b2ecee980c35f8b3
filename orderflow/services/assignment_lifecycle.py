"""
Assignment Lifecycle Service

Routes one order product line to one employee and walks it through the
approval gate and the work states:

    pending ──approve──▶ approved ──start──▶ in_progress ──complete──▶ completed
       └────reject───▶ rejected

Manages transitions with:
  - Transition validation (ASSIGNMENT_TRANSITIONS)
  - Role checks (admin reviews, the assigned employee works)
  - Side effects (approve → approved_by/at, reject → rejection_reason, ...)
  - Completion writes the employee's pending payment in the same commit
  - Best-effort notifications after the commit

Strict mode (default) only allows the moves in ASSIGNMENT_TRANSITIONS.
Permissive mode applies the target status from any other status, which
reproduces the legacy behaviour where only the UI gated the buttons.

The engine never touches the order. Reflecting an assignment change onto
its product line is the caller's job (order_service.rollup_assignment).

Usage:
    from orderflow.services.assignment_lifecycle import approve_assignment

    assignment = approve_assignment(actor, assignment_id)
"""

import logging

from sqlalchemy import or_

from orderflow.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from orderflow.models import db
from orderflow.models.assignment import (
    ASSIGNMENT_STATUSES,
    ASSIGNMENT_TRANSITIONS,
    SUBMITTED_VIEW_STATUSES,
    Assignment,
)
from orderflow.models.base import utcnow
from orderflow.models.order import Order
from orderflow.models.user import Role, User
from orderflow.services.notification import NotificationService, notify_safely
from orderflow.services.payment_service import build_completion_payment
from orderflow.services.permission import require_role
from orderflow.utils.helpers import commit_or_raise, get_or_raise, parse_datetime

logger = logging.getLogger(__name__)

# Action → roles allowed to perform it
_ACTION_ROLES = {
    "approve": (Role.ADMIN,),
    "reject": (Role.ADMIN,),
    "start": (Role.ADMIN, Role.EMPLOYEE),
    "complete": (Role.ADMIN, Role.EMPLOYEE),
}


# ═══════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════
def validate_transition(assignment: Assignment, action: str, strict: bool = True) -> dict:
    """
    Validate whether an action is valid for the current state.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = ASSIGNMENT_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": assignment.status, "to": None,
                "reason": f"Unknown action: {action}"}

    if strict and assignment.status not in rule["from"]:
        return {"valid": False, "from": assignment.status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{assignment.status}'"}

    if not strict and assignment.status == rule["to"]:
        return {"valid": False, "from": assignment.status, "to": rule["to"],
                "reason": f"Assignment is already '{rule['to']}'"}

    return {"valid": True, "from": assignment.status, "to": rule["to"], "reason": None}


def get_available_actions(assignment: Assignment, strict: bool = True) -> list[str]:
    """Actions that are currently legal, for UI buttons."""
    return [
        action for action in ASSIGNMENT_TRANSITIONS
        if validate_transition(assignment, action, strict)["valid"]
    ]


def _check_actor(actor, assignment, action):
    require_role(actor, *_ACTION_ROLES[action], action=f"{action}_assignment")
    if actor.is_employee and assignment.employee_id != actor.id:
        raise PermissionDenied(actor.id, f"{action}_assignment",
                               "assignment belongs to another employee")


def _resolve_employee(employee_id):
    employee = get_or_raise(User, employee_id, "Employee")
    if employee.role != Role.EMPLOYEE.value:
        raise ValidationError(f"User {employee_id} is not an employee",
                              details={"employee_id": "not_employee"})
    if not employee.is_active:
        raise ValidationError(f"Employee {employee_id} is inactive",
                              details={"employee_id": "inactive"})
    return employee


def _resolve_order_line(order_id, product_id):
    order = get_or_raise(Order, order_id, "Order")
    line = order.get_line(product_id)
    if line is None:
        raise NotFoundError(resource="Product line", resource_id=product_id)
    return order, line


def live_assignment_for_line(order_id, product_id, exclude_id=None):
    """First non-rejected assignment covering a product line, if any."""
    query = Assignment.query.filter(
        Assignment.order_id == order_id,
        Assignment.product_id == product_id,
        Assignment.status != "rejected",
    )
    if exclude_id:
        query = query.filter(Assignment.id != exclude_id)
    return query.first()


def _denormalised_fields(order, line, employee, agent, deadline, notes):
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "product_id": line.id,
        "product_name": line.product_name,
        "product_specs": line.specifications,
        "quantity": line.quantity,
        "agent_id": agent.id if agent else None,
        "agent_name": agent.name if agent else "",
        "employee_id": employee.id,
        "employee_name": employee.name,
        "deadline": deadline,
        "notes": (notes or "").strip(),
    }


# ═══════════════════════════════════════════════════════════════
# Creation
# ═══════════════════════════════════════════════════════════════
def create_assignment(
    actor,
    *,
    order_id: str,
    product_id: str,
    employee_id: str,
    deadline,
    notes: str = "",
    agent_id: str | None = None,
) -> Assignment:
    """
    Route a product line to an employee, pending admin approval.

    Agents may only route to their own employees and are always the
    assignment's agent. Admins may name any agent; without one the
    employee's supervising agent is used.

    A line carries at most one live assignment: routing a line that already
    has a pending, approved, started or completed one raises ConflictError.
    Resubmission after a rejection is a new record.

    Side effects (after commit): the employee is told about the new task
    and every admin is asked to review it.
    """
    require_role(actor, Role.ADMIN, Role.AGENT, action="create_assignment")

    order, line = _resolve_order_line(order_id, product_id)
    existing = live_assignment_for_line(order.id, line.id)
    if existing is not None:
        raise ConflictError(
            f"Product line {line.id} already has a {existing.status} assignment ({existing.id})",
            details={"product_id": "already_assigned", "assignment_id": existing.id},
        )
    employee = _resolve_employee(employee_id)
    deadline = parse_datetime(deadline, "deadline", required=True)

    if actor.is_agent:
        if agent_id and agent_id != actor.id:
            raise PermissionDenied(actor.id, "create_assignment",
                                   "agents can only create assignments as themselves")
        if employee.agent_id != actor.id:
            raise PermissionDenied(actor.id, "create_assignment",
                                   f"employee {employee.id} is not supervised by this agent")
        agent_id = actor.id

    agent_id = agent_id or employee.agent_id
    if not agent_id:
        raise ValidationError("agent_id is required (employee has no supervising agent)",
                              details={"agent_id": "required"})
    agent = get_or_raise(User, agent_id, "Agent")
    if agent.role != Role.AGENT.value:
        raise ValidationError(f"User {agent_id} is not an agent", details={"agent_id": "not_agent"})

    assignment = Assignment(
        status="pending",
        assigned_by=actor.id,
        assigned_by_name=actor.name,
        **_denormalised_fields(order, line, employee, agent, deadline, notes),
    )
    db.session.add(assignment)
    commit_or_raise("create assignment")
    logger.info("Assignment created id=%s order=%s line=%s employee=%s by=%s",
                assignment.id, order.order_number, line.id, employee.id, actor.id)

    notify_safely(NotificationService.notify_new_assignment, assignment)
    notify_safely(NotificationService.notify_approval_required, assignment)
    return assignment


def build_direct_assignment(actor, order, line, employee, deadline=None) -> Assignment:
    """
    Build (not commit) a pre-approved assignment for an admin's direct
    assignment at order creation.

    The record never passes through ``pending``: it is created
    ``approved`` with approved_at/approved_by set to the admin and now.
    """
    require_role(actor, Role.ADMIN, action="direct_assignment")
    now = utcnow()
    assignment = Assignment(
        status="approved",
        assigned_by=actor.id,
        assigned_by_name=actor.name,
        approved_at=now,
        approved_by=actor.id,
        **_denormalised_fields(order, line, employee, employee.agent,
                               deadline or line.deadline or order.due_date, ""),
    )
    db.session.add(assignment)
    return assignment


# ═══════════════════════════════════════════════════════════════
# Transitions
# ═══════════════════════════════════════════════════════════════
def transition_assignment(
    actor,
    assignment_id: str,
    action: str,
    *,
    rejection_reason: str | None = None,
    completion_notes: str | None = None,
    strict: bool = True,
) -> Assignment:
    """
    Execute an assignment lifecycle transition.

    Args:
        actor: Resolved caller
        assignment_id: UUID of the assignment
        action: approve | reject | start | complete
        rejection_reason: Required (non-blank) for 'reject'
        completion_notes: Optional employee notes for 'complete'
        strict: Enforce ASSIGNMENT_TRANSITIONS (False = legacy permissive mode)

    Returns:
        The updated Assignment (committed).

    Raises:
        NotFoundError, PermissionDenied, TransitionError, ValidationError,
        ConflictError (stale concurrent write), BackendError
    """
    assignment = get_or_raise(Assignment, assignment_id, "Assignment")

    # 1. Permission check
    if action in _ACTION_ROLES:
        _check_actor(actor, assignment, action)

    # 2. Validate transition
    validation = validate_transition(assignment, action, strict)
    if not validation["valid"]:
        raise TransitionError("assignment", assignment.id, action, assignment.status,
                              validation["reason"])

    # 3. Pre-transition checks
    if action == "reject":
        rejection_reason = (rejection_reason or "").strip()
        if not rejection_reason:
            raise ValidationError("rejection_reason is required",
                                  details={"rejection_reason": "required"})

    # 4. Execute transition
    now = utcnow()
    payment = None
    previous_status = assignment.status
    assignment.status = validation["to"]

    if action == "approve":
        assignment.approved_at = now
        assignment.approved_by = actor.id
        assignment.reviewed_at = now
        assignment.reviewed_by = actor.id
    elif action == "reject":
        assignment.rejected_at = now
        assignment.rejected_by = actor.id
        assignment.reviewed_at = now
        assignment.reviewed_by = actor.id
        assignment.rejection_reason = rejection_reason
    elif action == "start":
        assignment.started_at = now
    elif action == "complete":
        assignment.completed_at = now
        if completion_notes and completion_notes.strip():
            assignment.completion_notes = completion_notes.strip()
        payment = build_completion_payment(assignment)

    commit_or_raise(f"{action} assignment")
    logger.info("Assignment %s id=%s %s→%s by=%s", action, assignment.id,
                previous_status, assignment.status, actor.id)

    # 5. Notifications (best effort)
    _notify_transition(action, assignment)
    if payment is not None:
        notify_safely(NotificationService.notify_payment_recorded, payment)
    return assignment


def _notify_transition(action, assignment):
    recipients = [assignment.employee_id]
    if assignment.agent_id and assignment.agent_id != assignment.employee_id:
        recipients.append(assignment.agent_id)

    if action == "approve":
        for uid in recipients:
            notify_safely(NotificationService.notify_assignment_approved, uid, assignment)
    elif action == "reject":
        for uid in recipients:
            notify_safely(NotificationService.notify_assignment_rejected, uid, assignment)
    elif action == "complete":
        admin_ids = [
            uid for (uid,) in db.session.query(User.id)
            .filter(User.role == Role.ADMIN.value, User.is_active.is_(True))
            .all()
        ]
        targets = ([assignment.agent_id] if assignment.agent_id else []) + admin_ids
        notify_safely(NotificationService.notify_assignment_completed, targets, assignment)


def approve_assignment(actor, assignment_id, *, strict=True) -> Assignment:
    return transition_assignment(actor, assignment_id, "approve", strict=strict)


def reject_assignment(actor, assignment_id, reason, *, strict=True) -> Assignment:
    return transition_assignment(actor, assignment_id, "reject",
                                 rejection_reason=reason, strict=strict)


def start_assignment(actor, assignment_id, *, strict=True) -> Assignment:
    return transition_assignment(actor, assignment_id, "start", strict=strict)


def complete_assignment(actor, assignment_id, notes=None, *, strict=True) -> Assignment:
    return transition_assignment(actor, assignment_id, "complete",
                                 completion_notes=notes, strict=strict)


# ═══════════════════════════════════════════════════════════════
# Queries (newest first)
# ═══════════════════════════════════════════════════════════════
def get_assignment(assignment_id) -> Assignment:
    return get_or_raise(Assignment, assignment_id, "Assignment")


def list_assignments(*, agent_id=None, employee_id=None, order_id=None, status=None):
    """Filtered assignment query ordered newest-created first."""
    q = Assignment.query
    if agent_id:
        q = q.filter(Assignment.agent_id == agent_id)
    if employee_id:
        q = q.filter(Assignment.employee_id == employee_id)
    if order_id:
        q = q.filter(Assignment.order_id == order_id)
    if status:
        if status not in ASSIGNMENT_STATUSES:
            raise ValidationError(f"Invalid assignment status: {status}",
                                  details={"allowed": list(ASSIGNMENT_STATUSES)})
        q = q.filter(Assignment.status == status)
    return q.order_by(Assignment.created_at.desc())


def list_by_agent(agent_id):
    return list_assignments(agent_id=agent_id).all()


def list_by_employee(employee_id):
    return list_assignments(employee_id=employee_id).all()


def list_by_order(order_id):
    return list_assignments(order_id=order_id).all()


def list_all():
    return list_assignments().all()


def list_pending():
    """Approval queue."""
    return list_assignments(status="pending").all()


def list_submitted_by_agent(agent_id):
    """Assignments an agent created that are still in the approval view."""
    return (
        Assignment.query
        .filter(Assignment.assigned_by == agent_id,
                Assignment.status.in_(SUBMITTED_VIEW_STATUSES))
        .order_by(Assignment.created_at.desc())
        .all()
    )


def visible_to(actor, query):
    """Restrict an assignment query to what ``actor`` may see."""
    if actor.is_admin:
        return query
    if actor.is_agent:
        return query.filter(or_(Assignment.agent_id == actor.id,
                                Assignment.assigned_by == actor.id))
    return query.filter(Assignment.employee_id == actor.id)


def can_view(actor, assignment) -> bool:
    if actor.is_admin:
        return True
    if actor.is_agent:
        return actor.id in (assignment.agent_id, assignment.assigned_by)
    return assignment.employee_id == actor.id
