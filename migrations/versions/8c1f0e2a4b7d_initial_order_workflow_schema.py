"""initial_order_workflow_schema

Creates the order workflow tables:
  - users            : directory accounts (admin | agent | employee)
  - catalog_products : purchasable product definitions
  - companies        : client companies
  - orders           : client orders with aggregate totals and status
  - order_products   : product lines owned by an order
  - assignments      : product line → employee routing with approval gate
  - notifications    : in-app notifications per user

Tables are created conditionally so the migration can run against a
database that already received them via db.create_all() in development.

Revision ID: 8c1f0e2a4b7d
Revises:
Create Date: 2026-10-18 09:12:44.118203
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '8c1f0e2a4b7d'
down_revision = None
branch_labels = None
depends_on = None


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=False),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False,
                      comment="admin | agent | employee"),
            sa.Column("agent_id", sa.String(length=36), nullable=True,
                      comment="Supervising agent (employees only)"),
            sa.Column("skills", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _ts("created_at"),
            _ts("updated_at"),
            sa.CheckConstraint("role IN ('admin','agent','employee')", name="ck_user_role"),
            sa.ForeignKeyConstraint(["agent_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)
        op.create_index("ix_users_role", "users", ["role"])
        op.create_index("ix_users_agent_id", "users", ["agent_id"])

    # ── Catalog products ──────────────────────────────────────────────────
    if "catalog_products" not in existing:
        op.create_table(
            "catalog_products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False,
                      comment="sweater | tshirt | thread_craft | handmade_craft"),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("base_price", sa.Float(), nullable=False, server_default="0"),
            sa.Column("creation_cost", sa.Float(), nullable=False, server_default="0"),
            sa.Column("estimated_hours", sa.Float(), nullable=True),
            sa.Column("skills_required", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_by", sa.String(length=36), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.PrimaryKeyConstraint("id"),
        )

    # ── Companies ─────────────────────────────────────────────────────────
    if "companies" not in existing:
        op.create_table(
            "companies",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("phone", sa.String(length=50), nullable=True),
            sa.Column("contact_person", sa.String(length=200), nullable=True),
            sa.Column("address", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            _ts("created_at"),
            _ts("updated_at"),
            sa.PrimaryKeyConstraint("id"),
        )

    # ── Orders ────────────────────────────────────────────────────────────
    if "orders" not in existing:
        op.create_table(
            "orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_number", sa.String(length=30), nullable=False),
            sa.Column("client_company_id", sa.String(length=36), nullable=True),
            sa.Column("client_company_name", sa.String(length=200), nullable=True),
            sa.Column("total_quantity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("total_value", sa.Float(), nullable=False, server_default="0"),
            sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
            _ts("due_date"),
            _ts("delivery_date"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("special_instructions", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=36), nullable=True),
            sa.Column("assigned_agents", sa.JSON(), nullable=True),
            sa.Column("assigned_employees", sa.JSON(), nullable=True),
            _ts("delivered_at"),
            sa.Column("delivered_by", sa.String(length=36), nullable=True),
            _ts("created_at"),
            _ts("updated_at"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.CheckConstraint(
                "status IN ('pending','in_progress','ready_for_review','completed','delivered')",
                name="ck_order_status",
            ),
            sa.ForeignKeyConstraint(["client_company_id"], ["companies.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
        op.create_index("ix_orders_client_company_id", "orders", ["client_company_id"])

    # ── Order product lines ───────────────────────────────────────────────
    if "order_products" not in existing:
        op.create_table(
            "order_products",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("catalog_product_id", sa.String(length=36), nullable=True),
            sa.Column("product_name", sa.String(length=200), nullable=False),
            sa.Column("product_type", sa.String(length=30), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("specifications", sa.Text(), nullable=False),
            _ts("deadline"),
            sa.Column("base_price", sa.Float(), nullable=False, server_default="0"),
            sa.Column("creation_cost", sa.Float(), nullable=False, server_default="0"),
            sa.Column("total_price", sa.Float(), nullable=False, server_default="0"),
            sa.Column("total_cost", sa.Float(), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
            sa.Column("assigned_to", sa.String(length=36), nullable=True),
            sa.Column("assigned_by", sa.String(length=36), nullable=True),
            _ts("assignment_date"),
            _ts("completed_date"),
            _ts("delivered_date"),
            sa.CheckConstraint(
                "status IN ('pending','assigned','in_progress','ready_for_review','completed','delivered')",
                name="ck_order_product_status",
            ),
            sa.CheckConstraint("quantity > 0", name="ck_order_product_quantity"),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["catalog_product_id"], ["catalog_products.id"],
                                    ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_order_products_order_id", "order_products", ["order_id"])
        op.create_index("ix_order_products_catalog_product_id", "order_products",
                        ["catalog_product_id"])

    # ── Assignments ───────────────────────────────────────────────────────
    if "assignments" not in existing:
        op.create_table(
            "assignments",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("order_id", sa.String(length=36), nullable=True),
            sa.Column("order_number", sa.String(length=30), nullable=True),
            sa.Column("product_id", sa.String(length=36), nullable=True,
                      comment="Order product line id"),
            sa.Column("product_name", sa.String(length=200), nullable=True),
            sa.Column("product_specs", sa.Text(), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=True),
            sa.Column("agent_id", sa.String(length=36), nullable=True),
            sa.Column("agent_name", sa.String(length=200), nullable=True),
            sa.Column("employee_id", sa.String(length=36), nullable=False),
            sa.Column("employee_name", sa.String(length=200), nullable=True),
            sa.Column("assigned_by", sa.String(length=36), nullable=True,
                      comment="Admin or agent user id"),
            sa.Column("assigned_by_name", sa.String(length=200), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending",
                      comment="pending | approved | rejected | in_progress | completed"),
            _ts("deadline"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("completion_notes", sa.Text(), nullable=True),
            _ts("reviewed_at"),
            sa.Column("reviewed_by", sa.String(length=36), nullable=True),
            _ts("approved_at"),
            sa.Column("approved_by", sa.String(length=36), nullable=True),
            _ts("rejected_at"),
            sa.Column("rejected_by", sa.String(length=36), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            _ts("started_at"),
            _ts("completed_at"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.CheckConstraint(
                "status IN ('pending','approved','rejected','in_progress','completed')",
                name="ck_assignment_status",
            ),
            sa.ForeignKeyConstraint(["order_id"], ["orders.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["product_id"], ["order_products.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["agent_id"], ["users.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["employee_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        for col in ("order_id", "product_id", "agent_id", "employee_id",
                    "assigned_by", "status", "created_at"):
            op.create_index(f"ix_assignments_{col}", "assignments", [col])

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("category", sa.String(length=30), nullable=True),
            sa.Column("severity", sa.String(length=20), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=True,
                      comment="assignment/order/user/payment"),
            sa.Column("entity_id", sa.String(length=36), nullable=True),
            sa.Column("data", sa.JSON(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            _ts("read_at"),
            _ts("created_at"),
            _ts("updated_at"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
        op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
        op.create_index("ix_notifications_user_unread", "notifications", ["user_id", "is_read"])


def downgrade():
    for table in ("notifications", "assignments", "order_products", "orders",
                  "companies", "catalog_products", "users"):
        op.drop_table(table)
