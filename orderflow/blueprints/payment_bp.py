"""
Order Workflow Service
Payment Blueprint — employee payouts for completed assignments.

Endpoints (all under /api/v1):
    GET  /payments                  admin: all (?status=, ?employee_id=); employee: own
    POST /payments                  record a payment by hand (admin)
    GET  /payments/<id>             admin or the paid employee
    POST /payments/<id>/pay         mark paid (admin), body {"notes"?, "amount"?}
    POST /payments/<id>/cancel      cancel (admin), body {"notes"?}

List responses carry a ``summary`` (counts per status, pending and paid
amounts) over the whole filtered set, not just the current page.
"""

import logging

from flask import Blueprint, jsonify, request

from orderflow.blueprints import current_actor, json_body, page_response, paginate_list
from orderflow.core.exceptions import PermissionDenied
from orderflow.models.user import Role
from orderflow.services import payment_service
from orderflow.services.permission import require_role

logger = logging.getLogger(__name__)

payment_bp = Blueprint("payments", __name__, url_prefix="/api/v1")


@payment_bp.route("/payments", methods=["GET"])
def list_payments():
    actor = current_actor()
    require_role(actor, Role.ADMIN, Role.EMPLOYEE, action="list_payments")
    employee_id = request.args.get("employee_id") if actor.is_admin else actor.id
    payments = payment_service.list_payments(
        status=request.args.get("status"), employee_id=employee_id,
    ).all()

    items, total = paginate_list(payments)
    body = page_response(items, total)
    body["summary"] = payment_service.summarise(payments)
    return jsonify(body)


@payment_bp.route("/payments", methods=["POST"])
def create_payment():
    actor = current_actor()
    data = json_body()
    payment = payment_service.create_payment(
        actor,
        assignment_id=data.get("assignment_id"),
        amount=data.get("amount"),
        notes=data.get("notes", ""),
    )
    return jsonify(payment.to_dict()), 201


@payment_bp.route("/payments/<payment_id>", methods=["GET"])
def get_payment(payment_id):
    actor = current_actor()
    payment = payment_service.get_payment(payment_id)
    if not actor.is_admin and payment.employee_id != actor.id:
        raise PermissionDenied(actor.id, "view_payment", "payment belongs to another employee")
    return jsonify(payment.to_dict())


@payment_bp.route("/payments/<payment_id>/pay", methods=["POST"])
def mark_paid(payment_id):
    actor = current_actor()
    data = json_body()
    payment = payment_service.mark_paid(
        actor, payment_id, notes=data.get("notes"), amount=data.get("amount"),
    )
    return jsonify(payment.to_dict())


@payment_bp.route("/payments/<payment_id>/cancel", methods=["POST"])
def cancel_payment(payment_id):
    actor = current_actor()
    data = json_body()
    payment = payment_service.cancel_payment(actor, payment_id, notes=data.get("notes"))
    return jsonify(payment.to_dict())
