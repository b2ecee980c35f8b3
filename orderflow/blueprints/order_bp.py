"""
Order Workflow Service
Order Blueprint — orders, product lines, delivery and membership.

Endpoints (all under /api/v1):
    GET    /orders                                   list (role-scoped, paginated)
    POST   /orders                                   create (admin)
    GET    /orders/overdue                           open orders past their due date
    GET    /orders/by-number/<number>                lookup by order number
    GET    /orders/<id>                              detail with product lines
    DELETE /orders/<id>                              delete (admin)
    PUT    /orders/<id>/status                       status override (admin)
    PUT    /orders/<id>/products/<line_id>/status    product status + rollup (admin)
    PUT    /orders/<id>/products/<line_id>           edit line (admin)
    POST   /orders/<id>/deliver                      mark delivered (admin)
    POST   /orders/<id>/agents                       add agent (admin)
    POST   /orders/<id>/employees                    add employee (admin, agent)
    GET    /orders/<id>/assignments                  assignments for the order
"""

import logging

from flask import Blueprint, jsonify, request

from orderflow.blueprints import current_actor, json_body, page_response, paginate_list
from orderflow.core.exceptions import PermissionDenied, ValidationError
from orderflow.services import assignment_lifecycle, order_service

logger = logging.getLogger(__name__)

order_bp = Blueprint("orders", __name__, url_prefix="/api/v1")


def _load_visible(actor, order_id):
    order = order_service.get_order(order_id)
    if not order_service.can_view_order(actor, order):
        raise PermissionDenied(actor.id, "view_order", "order is not assigned to you")
    return order


# ═══════════════════════════════════════════════════════════════════════════
#  QUERIES
# ═══════════════════════════════════════════════════════════════════════════

@order_bp.route("/orders", methods=["GET"])
def list_orders():
    """Admins see every order; agents and employees see orders they belong to."""
    actor = current_actor()
    if actor.is_admin:
        orders = order_service.list_orders(status=request.args.get("status")).all()
    elif actor.is_agent:
        orders = order_service.list_orders_for_agent(actor.id)
    else:
        orders = order_service.list_orders_for_employee(actor.id)

    include_products = request.args.get("include_products", "false").lower() == "true"
    items, total = paginate_list(orders)
    return jsonify(page_response(
        items, total, lambda o: o.to_dict(include_products=include_products),
    ))


@order_bp.route("/orders/overdue", methods=["GET"])
def list_overdue_orders():
    actor = current_actor()
    orders = order_service.list_overdue_orders()
    if not actor.is_admin:
        orders = [o for o in orders if order_service.can_view_order(actor, o)]
    items, total = paginate_list(orders)
    return jsonify(page_response(items, total, lambda o: o.to_dict(include_products=False)))


@order_bp.route("/orders/by-number/<order_number>", methods=["GET"])
def get_order_by_number(order_number):
    actor = current_actor()
    order = order_service.get_order_by_number(order_number)
    if not order_service.can_view_order(actor, order):
        raise PermissionDenied(actor.id, "view_order", "order is not assigned to you")
    return jsonify(order.to_dict())


@order_bp.route("/orders/<order_id>", methods=["GET"])
def get_order(order_id):
    actor = current_actor()
    return jsonify(_load_visible(actor, order_id).to_dict())


@order_bp.route("/orders/<order_id>/assignments", methods=["GET"])
def list_order_assignments(order_id):
    actor = current_actor()
    _load_visible(actor, order_id)
    query = assignment_lifecycle.visible_to(
        actor, assignment_lifecycle.list_assignments(order_id=order_id),
    )
    return jsonify({"items": [a.to_dict() for a in query.all()]})


# ═══════════════════════════════════════════════════════════════════════════
#  WRITES
# ═══════════════════════════════════════════════════════════════════════════

@order_bp.route("/orders", methods=["POST"])
def create_order():
    """
    Create an order.

    Body: company_id, products[{catalog_product_id, quantity, specifications,
    deadline?, base_price?, creation_cost?}], due_date, delivery_date, notes,
    special_instructions, assign_employee_id?, assign_agent_id?
    """
    actor = current_actor()
    data = json_body()
    products = data.get("products") or []
    if not isinstance(products, list):
        raise ValidationError("products must be a list", details={"products": "invalid"})

    order = order_service.create_order(
        actor,
        company_id=data.get("company_id"),
        products=products,
        due_date=data.get("due_date"),
        delivery_date=data.get("delivery_date"),
        notes=data.get("notes", ""),
        special_instructions=data.get("special_instructions", ""),
        assign_employee_id=data.get("assign_employee_id") or None,
        assign_agent_id=data.get("assign_agent_id") or None,
    )
    result = order.to_dict()
    result["assignments"] = [a.to_dict() for a in assignment_lifecycle.list_by_order(order.id)]
    return jsonify(result), 201


@order_bp.route("/orders/<order_id>", methods=["DELETE"])
def delete_order(order_id):
    actor = current_actor()
    order_service.delete_order(actor, order_id)
    return jsonify({"deleted": True, "id": order_id})


@order_bp.route("/orders/<order_id>/status", methods=["PUT"])
def update_order_status(order_id):
    actor = current_actor()
    data = json_body()
    order = order_service.update_order_status(actor, order_id, data.get("status"))
    return jsonify(order.to_dict())


@order_bp.route("/orders/<order_id>/products/<line_id>/status", methods=["PUT"])
def update_product_status(order_id, line_id):
    actor = current_actor()
    data = json_body()
    order = order_service.update_product_status(actor, order_id, line_id, data.get("status"))
    return jsonify(order.to_dict())


@order_bp.route("/orders/<order_id>/products/<line_id>", methods=["PUT"])
def update_product_line(order_id, line_id):
    actor = current_actor()
    data = json_body()
    order = order_service.update_product_line(
        actor, order_id, line_id,
        quantity=data.get("quantity"),
        specifications=data.get("specifications"),
        deadline=data.get("deadline"),
        catalog_product_id=data.get("catalog_product_id"),
    )
    return jsonify(order.to_dict())


@order_bp.route("/orders/<order_id>/deliver", methods=["POST"])
def deliver_order(order_id):
    actor = current_actor()
    order = order_service.mark_delivered(actor, order_id)
    return jsonify(order.to_dict())


@order_bp.route("/orders/<order_id>/agents", methods=["POST"])
def add_order_agent(order_id):
    actor = current_actor()
    data = json_body()
    order = order_service.add_agent(actor, order_id, data.get("agent_id"))
    return jsonify(order.to_dict(include_products=False))


@order_bp.route("/orders/<order_id>/employees", methods=["POST"])
def add_order_employee(order_id):
    actor = current_actor()
    data = json_body()
    order = order_service.add_employee(actor, order_id, data.get("employee_id"))
    return jsonify(order.to_dict(include_products=False))
