"""
Order Engine — orders and their product lines.

Keeps two invariants on every write:
  - order totals equal the sums over its lines (Order.recompute_totals)
  - order status is the aggregate of the line statuses
    (status_rules.aggregate_order_status), except for the explicit admin
    override in ``update_order_status``

Usage:
    from orderflow.services.order_service import create_order

    order = create_order(actor, company_id=cid, products=[{...}], due_date="2026-11-01")
"""

import logging

from sqlalchemy import or_

from orderflow.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from orderflow.models import db
from orderflow.models.assignment import Assignment
from orderflow.models.base import utcnow
from orderflow.models.catalog import CatalogProduct, Company
from orderflow.models.order import ORDER_STATUSES, PRODUCT_LINE_STATUSES, Order, OrderProduct
from orderflow.models.user import Role, User
from orderflow.services.assignment_lifecycle import build_direct_assignment, live_assignment_for_line
from orderflow.services.code_generator import next_order_number
from orderflow.services.notification import NotificationService, notify_safely
from orderflow.services.permission import require_role
from orderflow.services.status_rules import (
    aggregate_order_status,
    is_order_overdue,
    product_status_for_assignment,
    rollup_line_status,
)
from orderflow.utils.helpers import commit_or_raise, get_or_raise, parse_datetime

logger = logging.getLogger(__name__)


# ── Input helpers ────────────────────────────────────────────────────────────

def _positive_int(value, field):
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from e
    if number < 1:
        raise ValidationError(f"{field} must be at least 1", details={field: "too_small"})
    return number


def _money(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from e
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: "negative"})
    return number


def _resolve_catalog_product(product_id, index):
    if not product_id:
        raise ValidationError(f"products[{index}].catalog_product_id is required",
                              details={f"products[{index}].catalog_product_id": "required"})
    product = db.session.get(CatalogProduct, product_id)
    if product is None:
        raise ValidationError(f"products[{index}]: catalog product {product_id} not found",
                              details={f"products[{index}].catalog_product_id": "not_found"})
    return product


def _build_line(data, index, default_deadline) -> OrderProduct:
    catalog = _resolve_catalog_product(data.get("catalog_product_id"), index)
    specifications = (data.get("specifications") or "").strip()
    if not specifications:
        raise ValidationError(f"products[{index}].specifications is required",
                              details={f"products[{index}].specifications": "required"})

    line = OrderProduct(
        position=index,
        catalog_product_id=catalog.id,
        product_name=catalog.name,
        product_type=catalog.type,
        quantity=_positive_int(data.get("quantity", 1), f"products[{index}].quantity"),
        specifications=specifications,
        deadline=parse_datetime(data.get("deadline"), f"products[{index}].deadline")
        or default_deadline,
        base_price=_money(data.get("base_price", catalog.base_price),
                          f"products[{index}].base_price"),
        creation_cost=_money(data.get("creation_cost", catalog.creation_cost),
                             f"products[{index}].creation_cost"),
        status="pending",
    )
    line.recompute_totals()
    return line


def _user_with_role(user_id, role, label):
    user = get_or_raise(User, user_id, label)
    if user.role != role.value:
        raise ValidationError(f"User {user_id} does not have role {role.value}",
                              details={"role": user.role})
    if not user.is_active:
        raise ValidationError(f"User {user_id} is inactive", details={"is_active": False})
    return user


def _add_member(order, attr, user_id):
    members = list(getattr(order, attr) or [])
    if user_id in members:
        return False
    members.append(user_id)
    setattr(order, attr, members)
    return True


def refresh_order_status(order) -> str:
    """Recompute and store the aggregate status. Returns the new status."""
    order.status = aggregate_order_status(line.status for line in order.products)
    return order.status


# ═══════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════
def create_order(
    actor,
    *,
    company_id: str,
    products: list[dict],
    due_date=None,
    delivery_date=None,
    notes: str = "",
    special_instructions: str = "",
    assign_employee_id: str | None = None,
    assign_agent_id: str | None = None,
) -> Order:
    """
    Create an order with its product lines.

    Every line starts ``pending`` and the order starts ``pending``.

    Direct assignment (``assign_employee_id``): one pre-approved
    Assignment per line is written in the same commit, the employee joins
    ``assigned_employees`` and is notified once per line.
    ``assign_agent_id`` adds the agent to ``assigned_agents`` and notifies
    it once per line; no assignments are created for agents.
    """
    require_role(actor, Role.ADMIN, action="create_order")

    if not products:
        raise ValidationError("At least one product is required", details={"products": "empty"})
    company = get_or_raise(Company, company_id, "Company")

    due = parse_datetime(due_date, "due_date")
    delivery = parse_datetime(delivery_date, "delivery_date")

    employee = _user_with_role(assign_employee_id, Role.EMPLOYEE, "Employee") \
        if assign_employee_id else None
    agent = _user_with_role(assign_agent_id, Role.AGENT, "Agent") if assign_agent_id else None

    lines = [_build_line(data or {}, i, due) for i, data in enumerate(products)]

    order = Order(
        order_number=next_order_number(),
        client_company_id=company.id,
        client_company_name=company.name,
        due_date=due,
        delivery_date=delivery,
        notes=(notes or "").strip(),
        special_instructions=(special_instructions or "").strip(),
        created_by=actor.id,
        status="pending",
        assigned_agents=[agent.id] if agent else [],
        assigned_employees=[employee.id] if employee else [],
    )
    order.products = lines
    order.recompute_totals()
    db.session.add(order)

    assignments = []
    if employee is not None:
        db.session.flush()
        assignments = [build_direct_assignment(actor, order, line, employee) for line in lines]

    commit_or_raise("create order")
    logger.info("Order created number=%s lines=%d total=%.2f by=%s direct=%s",
                order.order_number, len(lines), order.total_value, actor.id,
                employee.id if employee else None)

    for line in order.products:
        if employee is not None:
            notify_safely(NotificationService.notify_order_assigned, employee.id, order, line)
        if agent is not None:
            notify_safely(NotificationService.notify_order_assigned, agent.id, order, line)
    if assignments:
        logger.info("Direct assignments created order=%s count=%d",
                    order.order_number, len(assignments))
    return order


# ═══════════════════════════════════════════════════════════════
# Status
# ═══════════════════════════════════════════════════════════════
def update_order_status(actor, order_id, new_status) -> Order:
    """Admin override of the order status. Line statuses are not checked."""
    require_role(actor, Role.ADMIN, action="update_order_status")
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid order status: {new_status}",
                              details={"allowed": list(ORDER_STATUSES)})
    order = get_order(order_id)
    previous = order.status
    order.status = new_status
    commit_or_raise("update order status")
    logger.info("Order status override number=%s %s→%s by=%s",
                order.order_number, previous, new_status, actor.id)
    return order


def _set_line_status(order, line, new_status, *, assigned_to=None, assigned_by=None):
    if new_status not in PRODUCT_LINE_STATUSES:
        raise ValidationError(f"Invalid product status: {new_status}",
                              details={"allowed": list(PRODUCT_LINE_STATUSES)})
    now = utcnow()
    if new_status == "completed" and line.status != "completed":
        line.completed_date = now
    if new_status == "delivered" and line.status != "delivered":
        line.delivered_date = now
    if new_status == "assigned" and assigned_to:
        line.assigned_to = assigned_to
        line.assigned_by = assigned_by
        line.assignment_date = now
    line.status = new_status
    return refresh_order_status(order)


def _get_line(order, line_id):
    line = order.get_line(line_id)
    if line is None:
        raise NotFoundError(resource="Product line", resource_id=line_id)
    return line


def update_product_status(actor, order_id, line_id, new_status) -> Order:
    """
    Set one product line's status and re-derive the order status.

    Repeating the call with the same status leaves the order unchanged.
    """
    require_role(actor, Role.ADMIN, action="update_product_status")
    order = get_order(order_id)
    line = _get_line(order, line_id)
    previous = line.status
    _set_line_status(order, line, new_status)
    commit_or_raise("update product status")
    logger.info("Product status order=%s line=%s %s→%s order_status=%s by=%s",
                order.order_number, line.id, previous, new_status, order.status, actor.id)
    return order


def rollup_assignment(assignment) -> Order | None:
    """
    Reflect an assignment's status onto its product line and the order.

    Called by the API after a successful assignment write. Assignment
    ``pending`` leaves the line untouched; orders or lines that no longer
    exist are skipped. The line never moves backwards, and a rejection only
    resets it when no other live assignment covers it
    (status_rules.rollup_line_status). Returns the order, or None.
    """
    if product_status_for_assignment(assignment.status) is None:
        return None
    if not assignment.order_id or not assignment.product_id:
        return None
    order = db.session.get(Order, assignment.order_id)
    line = order.get_line(assignment.product_id) if order else None
    if line is None:
        logger.info("Rollup skipped: line %s of order %s no longer exists",
                    assignment.product_id, assignment.order_id)
        return None

    other = live_assignment_for_line(order.id, line.id, exclude_id=assignment.id)
    target = rollup_line_status(line.status, assignment.status, other_live=other is not None)
    if target is None:
        logger.info("Rollup kept line=%s at %s for assignment=%s (%s)",
                    line.id, line.status, assignment.id, assignment.status)
        return order

    _set_line_status(order, line, target,
                     assigned_to=assignment.employee_id, assigned_by=assignment.assigned_by)
    commit_or_raise("roll up assignment status")
    logger.info("Rollup assignment=%s → line=%s status=%s order_status=%s",
                assignment.id, line.id, target, order.status)
    return order


# ═══════════════════════════════════════════════════════════════
# Line edits / delivery / membership
# ═══════════════════════════════════════════════════════════════
def update_product_line(
    actor,
    order_id,
    line_id,
    *,
    quantity=None,
    specifications=None,
    deadline=None,
    catalog_product_id=None,
) -> Order:
    """Edit one line; re-derive that line's totals and the order aggregates."""
    require_role(actor, Role.ADMIN, action="update_product_line")
    order = get_order(order_id)
    line = _get_line(order, line_id)

    if catalog_product_id is not None and catalog_product_id != line.catalog_product_id:
        catalog = _resolve_catalog_product(catalog_product_id, line.position)
        line.catalog_product_id = catalog.id
        line.product_name = catalog.name
        line.product_type = catalog.type
        line.base_price = catalog.base_price
        line.creation_cost = catalog.creation_cost
    if quantity is not None:
        line.quantity = _positive_int(quantity, "quantity")
    if specifications is not None:
        specifications = specifications.strip()
        if not specifications:
            raise ValidationError("specifications cannot be empty",
                                  details={"specifications": "required"})
        line.specifications = specifications
    if deadline is not None:
        line.deadline = parse_datetime(deadline, "deadline")

    line.recompute_totals()
    order.recompute_totals()
    commit_or_raise("update product line")
    logger.info("Product line updated order=%s line=%s qty=%s by=%s",
                order.order_number, line.id, line.quantity, actor.id)
    return order


def mark_delivered(actor, order_id) -> Order:
    """Deliver every line and the order itself."""
    require_role(actor, Role.ADMIN, action="deliver_order")
    order = get_order(order_id)
    now = utcnow()
    for line in order.products:
        line.status = "delivered"
        line.delivered_date = now
    order.status = "delivered"
    order.delivered_at = now
    order.delivered_by = actor.id
    commit_or_raise("mark order delivered")
    logger.info("Order delivered number=%s by=%s", order.order_number, actor.id)
    return order


def add_agent(actor, order_id, agent_id) -> Order:
    require_role(actor, Role.ADMIN, action="add_order_agent")
    order = get_order(order_id)
    agent = _user_with_role(agent_id, Role.AGENT, "Agent")
    if _add_member(order, "assigned_agents", agent.id):
        commit_or_raise("add agent to order")
        logger.info("Agent %s added to order %s", agent.id, order.order_number)
    return order


def add_employee(actor, order_id, employee_id) -> Order:
    require_role(actor, Role.ADMIN, Role.AGENT, action="add_order_employee")
    order = get_order(order_id)
    if not can_view_order(actor, order):
        raise PermissionDenied(actor.id, "add_order_employee", "order is not assigned to you")
    employee = _user_with_role(employee_id, Role.EMPLOYEE, "Employee")
    if _add_member(order, "assigned_employees", employee.id):
        commit_or_raise("add employee to order")
        logger.info("Employee %s added to order %s", employee.id, order.order_number)
    return order


def delete_order(actor, order_id) -> None:
    """Hard delete; product lines cascade, assignments keep their denormalised copy."""
    require_role(actor, Role.ADMIN, action="delete_order")
    order = get_order(order_id)
    number = order.order_number
    db.session.delete(order)
    commit_or_raise("delete order")
    logger.info("Order deleted number=%s by=%s", number, actor.id)


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def get_order(order_id) -> Order:
    return get_or_raise(Order, order_id, "Order")


def get_order_by_number(order_number) -> Order:
    order = Order.query.filter_by(order_number=order_number).first()
    if order is None:
        raise NotFoundError(resource="Order", resource_id=order_number)
    return order


def list_orders(status=None):
    """All orders, newest first."""
    q = Order.query
    if status:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid order status: {status}",
                                  details={"allowed": list(ORDER_STATUSES)})
        q = q.filter_by(status=status)
    return q.order_by(Order.created_at.desc())


def _order_ids_with_assignments(*conditions):
    rows = db.session.query(Assignment.order_id).filter(or_(*conditions)).distinct()
    return {order_id for (order_id,) in rows}


def list_orders_for_agent(agent_id):
    """Orders the agent is a member of or has assignments on (as agent or submitter)."""
    via = _order_ids_with_assignments(Assignment.agent_id == agent_id,
                                      Assignment.assigned_by == agent_id)
    return [o for o in list_orders() if agent_id in (o.assigned_agents or []) or o.id in via]


def list_orders_for_employee(employee_id):
    via = _order_ids_with_assignments(Assignment.employee_id == employee_id)
    return [o for o in list_orders()
            if employee_id in (o.assigned_employees or []) or o.id in via]


def can_view_order(actor, order) -> bool:
    """
    Admins see every order. Agents and employees see orders they are a
    member of, or that carry an assignment involving them.
    """
    if actor.is_admin:
        return True
    if actor.is_agent:
        members = order.assigned_agents
        involved = or_(Assignment.agent_id == actor.id, Assignment.assigned_by == actor.id)
    else:
        members = order.assigned_employees
        involved = Assignment.employee_id == actor.id
    if actor.id in (members or []):
        return True
    return db.session.query(Assignment.id).filter(
        Assignment.order_id == order.id, involved,
    ).first() is not None


def list_overdue_orders(now=None):
    """Open orders whose due date has passed, evaluated at read time."""
    return [o for o in list_orders() if is_order_overdue(o.status, o.due_date, now)]
