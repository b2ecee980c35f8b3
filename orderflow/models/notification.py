"""
Order Workflow Service
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking

A notification carries a domain ``category`` (assignment, order, ...) and
a ``severity`` (info, success, ...), each from its own closed set.
"""

from orderflow.models import db
from orderflow.models.base import iso, iso_or_now, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = frozenset({"assignment", "order", "user", "payment", "delivery", "system"})
NOTIFICATION_SEVERITIES = frozenset({"info", "success", "warning", "error"})


class Notification(db.Model):
    """
    One record per recipient per workflow event. Fan-out (admins, agent +
    admins) writes one row per user; there is no shared broadcast row.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    severity = db.Column(db.String(20), default="info")

    # Source entity the notification points at
    entity_type = db.Column(db.String(30), default="", comment="assignment/order/user/payment")
    entity_id = db.Column(db.String(36), nullable=True)
    data = db.Column(db.JSON, nullable=True)

    # Read state
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_notifications_user_unread", "user_id", "is_read"),
    )

    def mark_read(self):
        self.is_read = True
        self.read_at = utcnow()

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": iso(self.read_at),
            "created_at": iso_or_now(self.created_at),
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
