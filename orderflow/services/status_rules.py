"""
Status-aggregation and consistency rules.

Pure functions, no database access. Shared by the order engine, the
assignment engine and model serialisation:

    aggregate_order_status(line_statuses)  → order status
    priority_of(deadline)                  → overdue | urgent | high | normal
    is_*_overdue(status, deadline)         → read-time overdue flag
    status_label(assignment_status)        → UI label
    product_status_for_assignment(status)  → product-line status to roll up
    rollup_line_status(current, status)    → guarded write-back for one line
    line_totals / sum_line_totals          → money and quantity totals

Usage:
    from orderflow.services.status_rules import aggregate_order_status

    aggregate_order_status(["completed", "pending"])   # → "pending"
"""

import math
from datetime import date, datetime, time, timezone

from orderflow.core.exceptions import ValidationError
from orderflow.models.assignment import ASSIGNMENT_STATUSES
from orderflow.models.base import as_utc, utcnow
from orderflow.models.order import PRODUCT_LINE_STATUSES


# ── Constants ────────────────────────────────────────────────────────────────

ACTIVE_ASSIGNMENT_STATUSES = frozenset({"pending", "approved", "in_progress"})
CLOSED_ORDER_STATUSES = frozenset({"completed", "delivered"})

ASSIGNMENT_STATUS_LABELS = {
    "pending": "Waiting for admin approval",
    "approved": "Approved by admin – Employee can start work",
    "rejected": "Rejected by admin",
    "in_progress": "Employee is working on this task",
    "completed": "Task completed by employee",
}

# Assignment status → product line status written back by the caller.
# None means the line is left untouched.
_ROLLUP = {
    "pending": None,
    "approved": "assigned",
    "rejected": "pending",
    "in_progress": "in_progress",
    "completed": "completed",
}

_LINE_PROGRESS = {status: rank for rank, status in enumerate(PRODUCT_LINE_STATUSES)}

URGENT_DAYS = 3
HIGH_DAYS = 7


# ═════════════════════════════════════════════════════════════════════════════
# Order aggregation
# ═════════════════════════════════════════════════════════════════════════════


def aggregate_order_status(line_statuses):
    """
    Derive an order status from its product-line statuses.

    Precedence: all delivered → delivered; all completed/delivered →
    completed; any in_progress/ready_for_review → in_progress; any
    assigned → in_progress; otherwise pending. An order without lines is
    pending. The result depends only on the multiset of statuses.
    """
    statuses = list(line_statuses)
    unknown = sorted({s for s in statuses if s not in PRODUCT_LINE_STATUSES})
    if unknown:
        raise ValidationError(
            f"Unknown product status: {', '.join(map(str, unknown))}",
            details={"allowed": list(PRODUCT_LINE_STATUSES)},
        )
    if not statuses:
        return "pending"

    if all(s == "delivered" for s in statuses):
        return "delivered"
    if all(s in CLOSED_ORDER_STATUSES for s in statuses):
        return "completed"
    if any(s in ("in_progress", "ready_for_review") for s in statuses):
        return "in_progress"
    if any(s == "assigned" for s in statuses):
        return "in_progress"
    return "pending"


def line_totals(base_price, creation_cost, quantity):
    """Return ``(total_price, total_cost)`` for one product line."""
    quantity = int(quantity or 0)
    return (
        round(float(base_price or 0) * quantity, 2),
        round(float(creation_cost or 0) * quantity, 2),
    )


def sum_line_totals(lines):
    """Sum quantity / total_price / total_cost across product lines."""
    total_quantity = 0
    total_value = 0.0
    total_cost = 0.0
    for line in lines:
        total_quantity += int(line.quantity or 0)
        total_value += float(line.total_price or 0)
        total_cost += float(line.total_cost or 0)
    return {
        "total_quantity": total_quantity,
        "total_value": round(total_value, 2),
        "total_cost": round(total_cost, 2),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Deadlines
# ═════════════════════════════════════════════════════════════════════════════


def _as_instant(value):
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


def priority_of(deadline, now=None):
    """
    Classify a deadline relative to ``now``.

    Remaining days are rounded up, so a deadline exactly 3 days out is
    "urgent" and one exactly 4 days out is "high" (both bounds inclusive).
    """
    deadline = _as_instant(deadline)
    now = _as_instant(now) or utcnow()
    if deadline < now:
        return "overdue"
    days = math.ceil((deadline - now).total_seconds() / 86400)
    if days <= URGENT_DAYS:
        return "urgent"
    if days <= HIGH_DAYS:
        return "high"
    return "normal"


def _is_past(deadline, now):
    deadline = _as_instant(deadline)
    if deadline is None:
        return False
    return deadline < (_as_instant(now) or utcnow())


def is_assignment_overdue(status, deadline, now=None):
    return status in ACTIVE_ASSIGNMENT_STATUSES and _is_past(deadline, now)


def is_order_overdue(status, due_date, now=None):
    return status not in CLOSED_ORDER_STATUSES and _is_past(due_date, now)


def is_product_line_overdue(status, deadline, now=None):
    return status not in CLOSED_ORDER_STATUSES and _is_past(deadline, now)


# ═════════════════════════════════════════════════════════════════════════════
# Assignment display / rollup
# ═════════════════════════════════════════════════════════════════════════════


def status_label(status):
    return ASSIGNMENT_STATUS_LABELS.get(status, status)


def product_status_for_assignment(status):
    """Product-line status implied by an assignment status (None = no change)."""
    if status not in ASSIGNMENT_STATUSES:
        raise ValidationError(f"Unknown assignment status: {status}")
    return _ROLLUP[status]


def rollup_line_status(current, assignment_status, other_live=False):
    """
    Line status an assignment change should write, or None to leave the line.

    Approve/start/complete only move a line forward along
    PRODUCT_LINE_STATUSES. A rejection puts the line back to ``pending``
    only when no other live assignment covers it and the line is not
    already completed or delivered.
    """
    target = product_status_for_assignment(assignment_status)
    if target is None or target == current:
        return None
    if assignment_status == "rejected":
        if other_live or current in CLOSED_ORDER_STATUSES:
            return None
        return target
    if _LINE_PROGRESS[target] < _LINE_PROGRESS.get(current, 0):
        return None
    return target
