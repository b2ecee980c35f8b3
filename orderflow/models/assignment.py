"""
Order Workflow Service
Assignment domain model — routing of one product line to one employee.

Lifecycle:
    pending ──approve──▶ approved ──start──▶ in_progress ──complete──▶ completed
       └────reject───▶ rejected

    rejected and completed are terminal. A rejected assignment is never
    resubmitted; a new Assignment row is created instead.

The one legitimate way to create an assignment outside ``pending`` is a
direct admin assignment at order creation, which is persisted already
``approved`` with approved_at/approved_by filled in.
"""

from orderflow.models import db
from orderflow.models.base import iso, iso_or_now, new_id, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

ASSIGNMENT_STATUSES = ("pending", "approved", "rejected", "in_progress", "completed")

TERMINAL_ASSIGNMENT_STATUSES = frozenset({"rejected", "completed"})

# Statuses shown on the agent's approval-tracking screens
SUBMITTED_VIEW_STATUSES = ("pending", "approved", "rejected")

ASSIGNMENT_TRANSITIONS = {
    "approve":  {"from": ["pending"], "to": "approved"},
    "reject":   {"from": ["pending"], "to": "rejected"},
    "start":    {"from": ["approved"], "to": "in_progress"},
    "complete": {"from": ["in_progress"], "to": "completed"},
}


class Assignment(db.Model):
    """
    Unit of task routing from an agent (or admin) to an employee, gated by
    admin approval.

    Order and product-line references are denormalised (number, name,
    specs, quantity) so the record stays readable if the order changes.
    """

    __tablename__ = "assignments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    # Back-references
    order_id = db.Column(
        db.String(36), db.ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    order_number = db.Column(db.String(30), default="")
    product_id = db.Column(
        db.String(36), db.ForeignKey("order_products.id", ondelete="SET NULL"),
        nullable=True, index=True, comment="Order product line id",
    )
    product_name = db.Column(db.String(200), default="")
    product_specs = db.Column(db.Text, default="")
    quantity = db.Column(db.Integer, default=1)

    # Routing
    agent_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    agent_name = db.Column(db.String(200), default="")
    employee_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True,
    )
    employee_name = db.Column(db.String(200), default="")
    assigned_by = db.Column(db.String(36), nullable=True, index=True, comment="Admin or agent user id")
    assigned_by_name = db.Column(db.String(200), default="")

    status = db.Column(
        db.String(20), default="pending", nullable=False, index=True,
        comment="pending | approved | rejected | in_progress | completed",
    )
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, default="")
    completion_notes = db.Column(db.Text, nullable=True)

    # Review gate
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(36), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(36), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(36), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Work
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','approved','rejected','in_progress','completed')",
            name="ck_assignment_status",
        ),
    )

    employee = db.relationship("User", foreign_keys=[employee_id])
    agent = db.relationship("User", foreign_keys=[agent_id])

    @property
    def is_terminal(self):
        return self.status in TERMINAL_ASSIGNMENT_STATUSES

    def to_dict(self):
        from orderflow.services.status_rules import (
            is_assignment_overdue, priority_of, status_label,
        )

        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number or "",
            "product_id": self.product_id,
            "product_name": self.product_name or "",
            "product_specs": self.product_specs or "",
            "quantity": self.quantity,
            "agent_id": self.agent_id,
            "agent_name": self.agent_name or "",
            "employee_id": self.employee_id,
            "employee_name": self.employee_name or "",
            "assigned_by": self.assigned_by,
            "assigned_by_name": self.assigned_by_name or "",
            "status": self.status,
            "status_label": status_label(self.status),
            "deadline": iso_or_now(self.deadline),
            "notes": self.notes or "",
            "completion_notes": self.completion_notes,
            "reviewed_at": iso(self.reviewed_at),
            "reviewed_by": self.reviewed_by,
            "approved_at": iso(self.approved_at),
            "approved_by": self.approved_by,
            "rejected_at": iso(self.rejected_at),
            "rejected_by": self.rejected_by,
            "rejection_reason": self.rejection_reason,
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
            "version": self.version,
            "is_overdue": is_assignment_overdue(self.status, self.deadline),
            "priority": priority_of(self.deadline) if self.deadline else None,
        }

    def __repr__(self):
        return f"<Assignment {self.id} [{self.status}] {self.product_name!r} → {self.employee_id}>"
