"""
Payment Service — employee payouts for completed assignments.

A pending payment is written in the same commit that completes an
assignment (``build_completion_payment``, called from
assignment_lifecycle). Admins settle it with ``mark_paid`` or void it with
``cancel_payment``; both apply to pending payments only.

Amount: the product line's labour cost (creation_cost × quantity) at
completion time. If the line is gone by then the payment is recorded at
0.0 and the admin sets the figure when paying.

Usage:
    from orderflow.services import payment_service

    payment_service.mark_paid(actor, payment_id, notes="Bank transfer 2031-04")
"""

import logging

from orderflow.core.exceptions import ConflictError, TransitionError, ValidationError
from orderflow.models import db
from orderflow.models.assignment import Assignment
from orderflow.models.base import utcnow
from orderflow.models.order import OrderProduct
from orderflow.models.payment import PAYMENT_STATUSES, PAYMENT_TRANSITIONS, Payment
from orderflow.models.user import Role
from orderflow.services.notification import NotificationService, notify_safely
from orderflow.services.permission import require_role
from orderflow.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)


def _amount(value):
    try:
        amount = round(float(value), 2)
    except (TypeError, ValueError) as e:
        raise ValidationError("amount must be a number", details={"amount": "invalid"}) from e
    if amount < 0:
        raise ValidationError("amount cannot be negative", details={"amount": "negative"})
    return amount


def labour_cost(assignment) -> float:
    """Creation cost of the assignment's product line, 0.0 when the line is gone."""
    line = db.session.get(OrderProduct, assignment.product_id) if assignment.product_id else None
    return round(line.total_cost or 0.0, 2) if line is not None else 0.0


def _new_payment(assignment, amount, notes=""):
    return Payment(
        employee_id=assignment.employee_id,
        employee_name=assignment.employee_name,
        assignment_id=assignment.id,
        order_id=assignment.order_id,
        order_number=assignment.order_number,
        product_name=assignment.product_name,
        amount=amount,
        status="pending",
        completed_at=assignment.completed_at or utcnow(),
        notes=(notes or "").strip(),
    )


# ═══════════════════════════════════════════════════════════════
# Creation
# ═══════════════════════════════════════════════════════════════
def build_completion_payment(assignment) -> Payment | None:
    """
    Add (not commit) the pending payment for a just-completed assignment.

    Returns None when the assignment already has a payment.
    """
    if Payment.query.filter_by(assignment_id=assignment.id).first() is not None:
        return None
    payment = _new_payment(assignment, labour_cost(assignment))
    db.session.add(payment)
    return payment


def create_payment(actor, *, assignment_id, amount=None, notes="") -> Payment:
    """Record a payment by hand for a completed assignment (admin)."""
    require_role(actor, Role.ADMIN, action="create_payment")
    assignment = get_or_raise(Assignment, assignment_id, "Assignment")
    if assignment.status != "completed":
        raise ValidationError(f"Assignment {assignment.id} is not completed",
                              details={"assignment_id": "not_completed"})
    existing = Payment.query.filter_by(assignment_id=assignment.id).first()
    if existing is not None:
        raise ConflictError(f"Assignment {assignment.id} already has payment {existing.id}",
                            details={"payment_id": existing.id})

    payment = _new_payment(
        assignment,
        labour_cost(assignment) if amount is None else _amount(amount),
        notes,
    )
    db.session.add(payment)
    commit_or_raise("create payment")
    logger.info("Payment created id=%s assignment=%s amount=%.2f by=%s",
                payment.id, assignment.id, payment.amount, actor.id)
    notify_safely(NotificationService.notify_payment_recorded, payment)
    return payment


# ═══════════════════════════════════════════════════════════════
# Settlement
# ═══════════════════════════════════════════════════════════════
def _settle(actor, payment_id, action, notes=None):
    require_role(actor, Role.ADMIN, action=f"{action}_payment")
    payment = get_payment(payment_id)
    rule = PAYMENT_TRANSITIONS[action]
    if payment.status not in rule["from"]:
        raise TransitionError("payment", payment.id, action, payment.status,
                              f"Cannot '{action}' from status '{payment.status}'")
    payment.status = rule["to"]
    if notes is not None:
        payment.notes = notes.strip()
    return payment


def mark_paid(actor, payment_id, notes=None, amount=None) -> Payment:
    """Settle a pending payment; ``amount`` optionally corrects the figure."""
    corrected = _amount(amount) if amount is not None else None
    payment = _settle(actor, payment_id, "pay", notes)
    if corrected is not None:
        payment.amount = corrected
    payment.paid_at = utcnow()
    payment.paid_by = actor.id
    commit_or_raise("mark payment paid")
    logger.info("Payment paid id=%s amount=%.2f by=%s", payment.id, payment.amount, actor.id)
    notify_safely(NotificationService.notify_payment_paid, payment)
    return payment


def cancel_payment(actor, payment_id, notes=None) -> Payment:
    payment = _settle(actor, payment_id, "cancel", notes)
    payment.cancelled_at = utcnow()
    payment.cancelled_by = actor.id
    commit_or_raise("cancel payment")
    logger.info("Payment cancelled id=%s by=%s", payment.id, actor.id)
    return payment


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def get_payment(payment_id) -> Payment:
    return get_or_raise(Payment, payment_id, "Payment")


def list_payments(status=None, employee_id=None):
    """Payments, most recently completed work first."""
    q = Payment.query
    if status:
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {status}",
                                  details={"allowed": list(PAYMENT_STATUSES)})
        q = q.filter_by(status=status)
    if employee_id:
        q = q.filter_by(employee_id=employee_id)
    return q.order_by(Payment.completed_at.desc(), Payment.created_at.desc())


def list_payments_for_employee(employee_id):
    return list_payments(employee_id=employee_id).all()


def summarise(payments) -> dict:
    """Counts per status plus the pending and paid amounts."""
    counts = {status: 0 for status in PAYMENT_STATUSES}
    amounts = {"pending": 0.0, "paid": 0.0}
    for payment in payments:
        counts[payment.status] += 1
        if payment.status in amounts:
            amounts[payment.status] += payment.amount or 0.0
    return {
        "count": sum(counts.values()),
        "by_status": counts,
        "pending_amount": round(amounts["pending"], 2),
        "paid_amount": round(amounts["paid"], 2),
    }
