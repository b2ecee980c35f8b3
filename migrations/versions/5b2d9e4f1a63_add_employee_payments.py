"""add_employee_payments

Adds the payments table: one payout per completed assignment.

Created conditionally, like the initial schema, so it can run against a
development database that already received the table via db.create_all().

Revision ID: 5b2d9e4f1a63
Revises: 8c1f0e2a4b7d
Create Date: 2026-10-18 14:03:27.550912
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5b2d9e4f1a63'
down_revision = '8c1f0e2a4b7d'
branch_labels = None
depends_on = None


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade():
    bind = op.get_bind()
    if "payments" in set(sa_inspect(bind).get_table_names()):
        return

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("employee_id", sa.String(length=36), nullable=False),
        sa.Column("employee_name", sa.String(length=200), nullable=True),
        sa.Column("assignment_id", sa.String(length=36), nullable=True),
        sa.Column("order_id", sa.String(length=36), nullable=True),
        sa.Column("order_number", sa.String(length=30), nullable=True),
        sa.Column("product_name", sa.String(length=200), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending",
                  comment="pending | paid | cancelled"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True,
                  comment="When the paid-for work was completed"),
        _ts("paid_at"),
        sa.Column("paid_by", sa.String(length=36), nullable=True),
        _ts("cancelled_at"),
        sa.Column("cancelled_by", sa.String(length=36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("status IN ('pending','paid','cancelled')", name="ck_payment_status"),
        sa.CheckConstraint("amount >= 0", name="ck_payment_amount"),
        sa.ForeignKeyConstraint(["employee_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assignment_id"], ["assignments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("assignment_id", name="uq_payments_assignment_id"),
    )
    for col in ("employee_id", "order_id", "status", "completed_at"):
        op.create_index(f"ix_payments_{col}", "payments", [col])


def downgrade():
    op.drop_table("payments")
