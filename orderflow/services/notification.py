"""
Order Workflow Service
Notification Service.

Central service for creating, broadcasting and querying in-app
notifications. Engines call the typed ``notify_*`` helpers only after
their own write has committed, wrapped in ``notify_safely``: a failed
notification is logged and never undoes or masks the primary change.
"""

import logging

from orderflow.core.exceptions import NotFoundError, ValidationError
from orderflow.models import db
from orderflow.models.base import utcnow
from orderflow.models.notification import (
    NOTIFICATION_CATEGORIES,
    NOTIFICATION_SEVERITIES,
    Notification,
)
from orderflow.models.user import Role, User
from orderflow.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


def notify_safely(func, *args, **kwargs):
    """
    Run a notification call, logging and suppressing any failure.

    Returns the call's result, or None if it failed.
    """
    try:
        return func(*args, **kwargs)
    except Exception:
        db.session.rollback()
        logger.exception("Notification %s failed", getattr(func, "__name__", func))
        return None


def _check_vocabulary(category, severity):
    if category not in NOTIFICATION_CATEGORIES:
        raise ValidationError(f"Unknown notification category: {category}",
                              details={"allowed": sorted(NOTIFICATION_CATEGORIES)})
    if severity not in NOTIFICATION_SEVERITIES:
        raise ValidationError(f"Unknown notification severity: {severity}",
                              details={"allowed": sorted(NOTIFICATION_SEVERITIES)})


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, title, message="", category="system", severity="info",
               entity_type="", entity_id=None, data=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        _check_vocabulary(category, severity)
        notif = Notification(
            user_id=user_id,
            title=title,
            message=message,
            category=category,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            data=data,
        )
        db.session.add(notif)
        commit_or_raise("create notification")
        return notif

    @staticmethod
    def broadcast(*, user_ids, title, message="", category="system", severity="info",
                  entity_type="", entity_id=None, data=None):
        """
        Send the same notification to several users, one record each.

        Returns:
            List of created Notification instances.
        """
        _check_vocabulary(category, severity)
        notifications = []
        for uid in dict.fromkeys(user_ids):
            notif = Notification(
                user_id=uid,
                title=title,
                message=message,
                category=category,
                severity=severity,
                entity_type=entity_type,
                entity_id=entity_id,
                data=data,
            )
            db.session.add(notif)
            notifications.append(notif)
        if notifications:
            commit_or_raise("broadcast notification")
        return notifications

    @staticmethod
    def notify_admins(**kwargs):
        """Broadcast to every active admin."""
        admin_ids = [
            uid for (uid,) in db.session.query(User.id)
            .filter(User.role == Role.ADMIN.value, User.is_active.is_(True))
            .all()
        ]
        return NotificationService.broadcast(user_ids=admin_ids, **kwargs)

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50, offset=0):
        """Retrieve a user's notifications, newest first. Returns (items, total)."""
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (q.order_by(Notification.created_at.desc(), Notification.id.desc())
                 .offset(offset).limit(limit).all())
        return items, total

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark one of the user's notifications as read."""
        notif = db.session.get(Notification, notification_id)
        if notif is None or notif.user_id != user_id:
            raise NotFoundError(resource="Notification", resource_id=notification_id)
        if not notif.is_read:
            notif.mark_read()
            commit_or_raise("mark notification read")
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all of a user's notifications as read. Returns the number updated."""
        q = Notification.query.filter_by(user_id=user_id, is_read=False)
        count = q.update({"is_read": True, "read_at": utcnow()}, synchronize_session="fetch")
        commit_or_raise("mark all notifications read")
        return count

    # ── Workflow Helpers ──────────────────────────────────────────────────

    @staticmethod
    def notify_user_created(user):
        """Welcome message for a newly created account."""
        return NotificationService.create(
            user_id=user.id,
            title="Welcome to Auromix!",
            message=f"Your {user.role} account has been created successfully. Welcome to the team!",
            category="user",
            severity="success",
            entity_type="user",
            entity_id=user.id,
            data={"role": user.role, "name": user.name},
        )

    @staticmethod
    def notify_order_assigned(user_id, order, line):
        """One product line of an order was handed to ``user_id``."""
        return NotificationService.create(
            user_id=user_id,
            title="New Order Assigned",
            message=f"Order {order.order_number} ({line.product_name}) has been assigned to you.",
            category="order",
            severity="info",
            entity_type="order",
            entity_id=order.id,
            data={"order_number": order.order_number, "product_id": line.id,
                  "product_name": line.product_name},
        )

    @staticmethod
    def notify_new_assignment(assignment):
        """Tell the employee a task has been routed to them (pending approval)."""
        return NotificationService.create(
            user_id=assignment.employee_id,
            title="New Assignment",
            message=(f"You have been assigned {assignment.product_name} for order "
                     f"{assignment.order_number}. It is waiting for admin approval."),
            category="assignment",
            severity="info",
            entity_type="assignment",
            entity_id=assignment.id,
            data={"assignment_id": assignment.id, "product_name": assignment.product_name},
        )

    @staticmethod
    def notify_approval_required(assignment):
        """Fan out to every admin: an assignment awaits review."""
        return NotificationService.notify_admins(
            title="Approval Required",
            message=(f"{assignment.assigned_by_name or 'An agent'} assigned "
                     f"{assignment.product_name} ({assignment.order_number}) to "
                     f"{assignment.employee_name}. Please review."),
            category="assignment",
            severity="warning",
            entity_type="assignment",
            entity_id=assignment.id,
            data={"assignment_id": assignment.id},
        )

    @staticmethod
    def notify_assignment_approved(user_id, assignment):
        return NotificationService.create(
            user_id=user_id,
            title="Assignment Approved",
            message=(f"Your assignment for {assignment.product_name} has been approved "
                     f"and is ready to start."),
            category="assignment",
            severity="success",
            entity_type="assignment",
            entity_id=assignment.id,
            data={"assignment_id": assignment.id, "product_name": assignment.product_name},
        )

    @staticmethod
    def notify_assignment_rejected(user_id, assignment):
        return NotificationService.create(
            user_id=user_id,
            title="Assignment Rejected",
            message=(f"Your assignment for {assignment.product_name} has been rejected. "
                     f"Reason: {assignment.rejection_reason}"),
            category="assignment",
            severity="error",
            entity_type="assignment",
            entity_id=assignment.id,
            data={"assignment_id": assignment.id, "product_name": assignment.product_name,
                  "reason": assignment.rejection_reason},
        )

    @staticmethod
    def notify_assignment_completed(user_ids, assignment):
        """Tell the originating agent and the admins the work is done."""
        return NotificationService.broadcast(
            user_ids=user_ids,
            title="Assignment Completed",
            message=(f"{assignment.employee_name} completed {assignment.product_name} "
                     f"for order {assignment.order_number}."),
            category="assignment",
            severity="success",
            entity_type="assignment",
            entity_id=assignment.id,
            data={"assignment_id": assignment.id, "product_name": assignment.product_name},
        )

    @staticmethod
    def notify_payment_recorded(payment):
        return NotificationService.create(
            user_id=payment.employee_id,
            title="Payment Pending",
            message=(f"A payment of ${payment.amount:.2f} for {payment.product_name} "
                     f"({payment.order_number}) is pending."),
            category="payment",
            severity="info",
            entity_type="payment",
            entity_id=payment.id,
            data={"payment_id": payment.id, "amount": payment.amount},
        )

    @staticmethod
    def notify_payment_paid(payment):
        return NotificationService.create(
            user_id=payment.employee_id,
            title="Payment Sent",
            message=(f"Your payment of ${payment.amount:.2f} for {payment.product_name} "
                     f"has been marked as paid."),
            category="payment",
            severity="success",
            entity_type="payment",
            entity_id=payment.id,
            data={"payment_id": payment.id, "amount": payment.amount,
                  "notes": payment.notes or ""},
        )
