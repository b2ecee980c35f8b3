"""
Order Workflow Service
Payment model — what an employee is owed for a completed assignment.

    pending ──pay──▶ paid
       └───cancel──▶ cancelled

One payment per assignment. Employee, order and product names are
copied at creation so the ledger stays readable after an order is
deleted.
"""

from orderflow.models import db
from orderflow.models.base import iso, iso_or_now, new_id, utcnow


PAYMENT_STATUSES = ("pending", "paid", "cancelled")

PAYMENT_TRANSITIONS = {
    "pay":    {"from": ["pending"], "to": "paid"},
    "cancel": {"from": ["pending"], "to": "cancelled"},
}


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    employee_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True,
    )
    employee_name = db.Column(db.String(200), default="")
    assignment_id = db.Column(
        db.String(36), db.ForeignKey("assignments.id", ondelete="SET NULL"),
        nullable=True, unique=True,
    )
    order_id = db.Column(db.String(36), nullable=True, index=True)
    order_number = db.Column(db.String(30), default="")
    product_name = db.Column(db.String(200), default="")

    amount = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), default="pending", nullable=False, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True,
                             comment="When the paid-for work was completed")
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_by = db.Column(db.String(36), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_by = db.Column(db.String(36), nullable=True)
    notes = db.Column(db.Text, default="")

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.CheckConstraint("status IN ('pending','paid','cancelled')", name="ck_payment_status"),
        db.CheckConstraint("amount >= 0", name="ck_payment_amount"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_name": self.employee_name or "",
            "assignment_id": self.assignment_id,
            "order_id": self.order_id,
            "order_number": self.order_number or "",
            "product_name": self.product_name or "",
            "amount": self.amount,
            "status": self.status,
            "completed_at": iso_or_now(self.completed_at),
            "paid_at": iso(self.paid_at),
            "paid_by": self.paid_by,
            "cancelled_at": iso(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "notes": self.notes or "",
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
            "version": self.version,
        }

    def __repr__(self):
        return f"<Payment {self.id} {self.amount:.2f} [{self.status}] → {self.employee_id}>"
