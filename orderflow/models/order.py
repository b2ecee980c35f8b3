"""
Order Workflow Service
Order domain models.

Models:
    - Order:        client purchase request with aggregate totals and status
    - OrderProduct: one catalog product instance inside an order (product line)

Architecture:
    Company ──1:N──▶ Order ──1:N──▶ OrderProduct ◀──N:1── CatalogProduct
    OrderProduct ──1:N──▶ Assignment  (see models/assignment.py)

Lifecycle states:
    OrderProduct: pending → assigned → in_progress → ready_for_review
                  → completed → delivered
    Order:        derived from its lines (services/status_rules.py),
                  or set directly by an admin override

Product lines are owned by their order (cascade delete-orphan) and are
never deleted on their own.
"""

from orderflow.models import db
from orderflow.models.base import iso, iso_or_now, new_id, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

ORDER_STATUSES = ("pending", "in_progress", "ready_for_review", "completed", "delivered")

PRODUCT_LINE_STATUSES = (
    "pending", "assigned", "in_progress", "ready_for_review", "completed", "delivered",
)


# ═════════════════════════════════════════════════════════════════════════════
# 1. Order
# ═════════════════════════════════════════════════════════════════════════════


class Order(db.Model):
    """
    Client order.

    Invariants (maintained by services/order_service.py):
      - total_quantity / total_value / total_cost equal the sums of the
        lines' quantity / total_price / total_cost.
      - status is the aggregate of the line statuses unless an admin
        overrode it explicitly.

    ``version`` is the optimistic-concurrency counter: a write based on a
    stale read fails instead of silently overwriting another actor's change.
    """

    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_number = db.Column(
        db.String(30), unique=True, nullable=False, index=True,
        comment="ORD-{6 trailing epoch-ms digits}-{3-digit random}",
    )

    client_company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    client_company_name = db.Column(db.String(200), default="")

    total_quantity = db.Column(db.Integer, default=0, nullable=False)
    total_value = db.Column(db.Float, default=0.0, nullable=False)
    total_cost = db.Column(db.Float, default=0.0, nullable=False)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(
        db.String(30), default="pending", nullable=False,
        comment="pending | in_progress | ready_for_review | completed | delivered",
    )
    notes = db.Column(db.Text, default="")
    special_instructions = db.Column(db.Text, default="")

    created_by = db.Column(db.String(36), nullable=True)
    assigned_agents = db.Column(db.JSON, default=list)
    assigned_employees = db.Column(db.JSON, default=list)

    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_by = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','in_progress','ready_for_review','completed','delivered')",
            name="ck_order_status",
        ),
    )

    products = db.relationship(
        "OrderProduct", backref="order", lazy="select",
        cascade="all, delete-orphan", order_by="OrderProduct.position",
    )

    def get_line(self, line_id):
        for line in self.products:
            if line.id == line_id:
                return line
        return None

    def recompute_totals(self):
        """Re-derive the aggregate totals from the product lines."""
        from orderflow.services.status_rules import sum_line_totals

        totals = sum_line_totals(self.products)
        self.total_quantity = totals["total_quantity"]
        self.total_value = totals["total_value"]
        self.total_cost = totals["total_cost"]

    def to_dict(self, include_products=True):
        from orderflow.services.status_rules import is_order_overdue, priority_of

        result = {
            "id": self.id,
            "order_number": self.order_number,
            "client_company_id": self.client_company_id,
            "client_company_name": self.client_company_name or "",
            "total_quantity": self.total_quantity,
            "total_value": self.total_value,
            "total_cost": self.total_cost,
            "due_date": iso_or_now(self.due_date),
            "delivery_date": iso_or_now(self.delivery_date),
            "status": self.status,
            "notes": self.notes or "",
            "special_instructions": self.special_instructions or "",
            "created_by": self.created_by,
            "assigned_agents": list(self.assigned_agents or []),
            "assigned_employees": list(self.assigned_employees or []),
            "delivered_at": iso(self.delivered_at),
            "delivered_by": self.delivered_by,
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
            "version": self.version,
            "is_overdue": is_order_overdue(self.status, self.due_date),
            "priority": priority_of(self.due_date) if self.due_date else None,
        }
        if include_products:
            result["products"] = [p.to_dict() for p in self.products]
        return result

    def __repr__(self):
        return f"<Order {self.order_number} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# 2. OrderProduct
# ═════════════════════════════════════════════════════════════════════════════


class OrderProduct(db.Model):
    """
    One product line of an order.

    total_price = base_price × quantity and total_cost = creation_cost ×
    quantity; both are recomputed whenever quantity or the catalog product
    changes (``recompute_totals``).
    """

    __tablename__ = "order_products"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    order_id = db.Column(
        db.String(36), db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    position = db.Column(db.Integer, default=0, nullable=False)

    catalog_product_id = db.Column(
        db.String(36), db.ForeignKey("catalog_products.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    product_name = db.Column(db.String(200), nullable=False)
    product_type = db.Column(db.String(30), default="")

    quantity = db.Column(db.Integer, nullable=False, default=1)
    specifications = db.Column(db.Text, nullable=False)
    deadline = db.Column(db.DateTime(timezone=True), nullable=True)

    base_price = db.Column(db.Float, nullable=False, default=0.0)
    creation_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_price = db.Column(db.Float, nullable=False, default=0.0)
    total_cost = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(
        db.String(30), default="pending", nullable=False,
        comment="pending | assigned | in_progress | ready_for_review | completed | delivered",
    )
    assigned_to = db.Column(db.String(36), nullable=True)
    assigned_by = db.Column(db.String(36), nullable=True)
    assignment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_date = db.Column(db.DateTime(timezone=True), nullable=True)

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','assigned','in_progress','ready_for_review','completed','delivered')",
            name="ck_order_product_status",
        ),
        db.CheckConstraint("quantity > 0", name="ck_order_product_quantity"),
    )

    catalog_product = db.relationship("CatalogProduct")

    def recompute_totals(self):
        from orderflow.services.status_rules import line_totals

        self.total_price, self.total_cost = line_totals(
            self.base_price, self.creation_cost, self.quantity,
        )

    def to_dict(self):
        from orderflow.services.status_rules import is_product_line_overdue

        return {
            "id": self.id,
            "order_id": self.order_id,
            "catalog_product_id": self.catalog_product_id,
            "product_name": self.product_name,
            "product_type": self.product_type or "",
            "quantity": self.quantity,
            "specifications": self.specifications,
            "deadline": iso_or_now(self.deadline),
            "base_price": self.base_price,
            "creation_cost": self.creation_cost,
            "total_price": self.total_price,
            "total_cost": self.total_cost,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "assigned_by": self.assigned_by,
            "assignment_date": iso(self.assignment_date),
            "completed_date": iso(self.completed_date),
            "delivered_date": iso(self.delivered_date),
            "is_overdue": is_product_line_overdue(self.status, self.deadline),
        }

    def __repr__(self):
        return f"<OrderProduct {self.id}: {self.product_name} x{self.quantity} [{self.status}]>"
