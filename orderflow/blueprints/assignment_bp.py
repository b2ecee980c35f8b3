"""
Order Workflow Service
Assignment Blueprint — routing, approval gate and work transitions.

Endpoints (all under /api/v1):
    GET  /assignments                 list (filters agent_id, employee_id, order_id, status)
    POST /assignments                 create pending assignment (admin, agent)
    GET  /assignments/pending         approval queue (admin)
    GET  /assignments/submitted       the calling agent's submissions
    GET  /assignments/<id>            detail + available actions
    POST /assignments/<id>/approve    admin
    POST /assignments/<id>/reject     admin, body {"rejection_reason": "..."}
    POST /assignments/<id>/start      assigned employee
    POST /assignments/<id>/complete   assigned employee, body {"notes": "..."}

After every successful transition the product line of the assignment is
updated to match (order_service.rollup_assignment). That second write is
independent: if it fails the assignment change stands and the response
carries ``rollup_error``.
"""

import logging

from flask import Blueprint, jsonify, request

from orderflow.blueprints import (
    current_actor,
    json_body,
    page_response,
    paginate_query,
    strict_transitions,
)
from orderflow.core.exceptions import OrderflowError, PermissionDenied
from orderflow.models.user import Role
from orderflow.services import assignment_lifecycle, order_service
from orderflow.services.permission import require_role

logger = logging.getLogger(__name__)

assignment_bp = Blueprint("assignments", __name__, url_prefix="/api/v1")


def _detail(assignment):
    result = assignment.to_dict()
    result["available_actions"] = assignment_lifecycle.get_available_actions(
        assignment, strict_transitions(),
    )
    return result


def _transition_response(assignment):
    """Roll the new status up to the order and build the response."""
    body = {"assignment": _detail(assignment), "order": None, "rollup_error": None}
    try:
        order = order_service.rollup_assignment(assignment)
    except OrderflowError as exc:
        logger.warning("Rollup failed for assignment %s: %s", assignment.id, exc)
        body["rollup_error"] = {"kind": exc.kind.value, "error": str(exc)}
        return jsonify(body)
    if order is not None:
        body["order"] = {"id": order.id, "status": order.status,
                         "order_number": order.order_number}
    return jsonify(body)


# ═══════════════════════════════════════════════════════════════════════════
#  QUERIES
# ═══════════════════════════════════════════════════════════════════════════

@assignment_bp.route("/assignments", methods=["GET"])
def list_assignments():
    actor = current_actor()
    query = assignment_lifecycle.list_assignments(
        agent_id=request.args.get("agent_id"),
        employee_id=request.args.get("employee_id"),
        order_id=request.args.get("order_id"),
        status=request.args.get("status"),
    )
    items, total = paginate_query(assignment_lifecycle.visible_to(actor, query))
    return jsonify(page_response(items, total))


@assignment_bp.route("/assignments/pending", methods=["GET"])
def list_pending():
    actor = current_actor()
    require_role(actor, Role.ADMIN, action="review_assignments")
    return jsonify({"items": [a.to_dict() for a in assignment_lifecycle.list_pending()]})


@assignment_bp.route("/assignments/submitted", methods=["GET"])
def list_submitted():
    actor = current_actor()
    require_role(actor, Role.AGENT, Role.ADMIN, action="list_submitted_assignments")
    agent_id = actor.id
    if actor.is_admin and request.args.get("agent_id"):
        agent_id = request.args["agent_id"]
    items = assignment_lifecycle.list_submitted_by_agent(agent_id)
    return jsonify({"items": [a.to_dict() for a in items]})


@assignment_bp.route("/assignments/<assignment_id>", methods=["GET"])
def get_assignment(assignment_id):
    actor = current_actor()
    assignment = assignment_lifecycle.get_assignment(assignment_id)
    if not assignment_lifecycle.can_view(actor, assignment):
        raise PermissionDenied(actor.id, "view_assignment", "not your assignment")
    return jsonify(_detail(assignment))


# ═══════════════════════════════════════════════════════════════════════════
#  WRITES
# ═══════════════════════════════════════════════════════════════════════════

@assignment_bp.route("/assignments", methods=["POST"])
def create_assignment():
    """Body: order_id, product_id, employee_id, deadline, notes?, agent_id?"""
    actor = current_actor()
    data = json_body()
    assignment = assignment_lifecycle.create_assignment(
        actor,
        order_id=data.get("order_id"),
        product_id=data.get("product_id"),
        employee_id=data.get("employee_id"),
        deadline=data.get("deadline"),
        notes=data.get("notes", ""),
        agent_id=data.get("agent_id") or None,
    )
    return jsonify(_detail(assignment)), 201


@assignment_bp.route("/assignments/<assignment_id>/approve", methods=["POST"])
def approve(assignment_id):
    actor = current_actor()
    assignment = assignment_lifecycle.approve_assignment(
        actor, assignment_id, strict=strict_transitions(),
    )
    return _transition_response(assignment)


@assignment_bp.route("/assignments/<assignment_id>/reject", methods=["POST"])
def reject(assignment_id):
    actor = current_actor()
    data = json_body()
    reason = data.get("rejection_reason", data.get("reason"))
    assignment = assignment_lifecycle.reject_assignment(
        actor, assignment_id, reason, strict=strict_transitions(),
    )
    return _transition_response(assignment)


@assignment_bp.route("/assignments/<assignment_id>/start", methods=["POST"])
def start(assignment_id):
    actor = current_actor()
    assignment = assignment_lifecycle.start_assignment(
        actor, assignment_id, strict=strict_transitions(),
    )
    return _transition_response(assignment)


@assignment_bp.route("/assignments/<assignment_id>/complete", methods=["POST"])
def complete(assignment_id):
    actor = current_actor()
    data = json_body()
    assignment = assignment_lifecycle.complete_assignment(
        actor, assignment_id, data.get("notes"), strict=strict_transitions(),
    )
    return _transition_response(assignment)
