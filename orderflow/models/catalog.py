"""
Order Workflow Service
Master data models — product catalog and client companies.

Models:
    - CatalogProduct: purchasable product definition (price, cost, skills)
    - Company:        client company placing orders

Neither carries a state machine; both are foreign-key sources for
orders and order product lines.
"""

from orderflow.models import db
from orderflow.models.base import iso_or_now, new_id, utcnow


# ── Constants ────────────────────────────────────────────────────────────────

PRODUCT_TYPES = frozenset({"sweater", "tshirt", "thread_craft", "handmade_craft"})


class CatalogProduct(db.Model):
    __tablename__ = "catalog_products"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    type = db.Column(db.String(30), nullable=False, comment="sweater | tshirt | thread_craft | handmade_craft")
    description = db.Column(db.Text, default="")
    base_price = db.Column(db.Float, nullable=False, default=0.0, comment="Price charged to the client")
    creation_cost = db.Column(db.Float, nullable=False, default=0.0, comment="Cost to produce one unit")
    estimated_hours = db.Column(db.Float, default=0.0)
    skills_required = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.String(36), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "description": self.description or "",
            "base_price": self.base_price,
            "creation_cost": self.creation_cost,
            "estimated_hours": self.estimated_hours,
            "skills_required": self.skills_required or [],
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
        }

    def __repr__(self):
        return f"<CatalogProduct {self.id}: {self.name}>"


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), default="")
    phone = db.Column(db.String(50), default="")
    contact_person = db.Column(db.String(200), default="")
    address = db.Column(db.JSON, default=dict, comment="street, city, state, zip_code, country")
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email or "",
            "phone": self.phone or "",
            "contact_person": self.contact_person or "",
            "address": self.address or {},
            "is_active": self.is_active,
            "created_at": iso_or_now(self.created_at),
            "updated_at": iso_or_now(self.updated_at),
        }

    def __repr__(self):
        return f"<Company {self.id}: {self.name}>"
