"""
Master data service — product catalog and client companies.

Plain CRUD with input validation. Writes are admin-only; reads are open
to any authenticated caller (enforced in the blueprint).
"""

import logging

from orderflow.core.exceptions import ValidationError
from orderflow.models import db
from orderflow.models.catalog import PRODUCT_TYPES, CatalogProduct, Company
from orderflow.models.user import Role
from orderflow.services.permission import require_role
from orderflow.utils.helpers import commit_or_raise, get_or_raise

logger = logging.getLogger(__name__)

_PRODUCT_FIELDS = ("name", "type", "description", "base_price", "creation_cost",
                   "estimated_hours", "skills_required")
_COMPANY_FIELDS = ("name", "email", "phone", "contact_person", "address")
_ADDRESS_KEYS = ("street", "city", "state", "zip_code", "country")


def _non_negative(value, field):
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from e
    if number < 0:
        raise ValidationError(f"{field} cannot be negative", details={field: "negative"})
    return number


def _required_text(value, field):
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    return value


# ═══════════════════════════════════════════════════════════════
# Catalog products
# ═══════════════════════════════════════════════════════════════
def _apply_product_fields(product, data):
    for key in _PRODUCT_FIELDS:
        if key not in data:
            continue
        val = data[key]
        if key == "name":
            val = _required_text(val, "name")
        elif key == "type":
            if val not in PRODUCT_TYPES:
                raise ValidationError(f"Invalid product type: {val}",
                                      details={"allowed": sorted(PRODUCT_TYPES)})
        elif key in ("base_price", "creation_cost", "estimated_hours"):
            val = _non_negative(val, key)
        elif key == "skills_required":
            val = [str(s).strip() for s in (val or []) if str(s).strip()]
        elif key == "description":
            val = val or ""
        setattr(product, key, val)


def create_product(actor, data) -> CatalogProduct:
    require_role(actor, Role.ADMIN, action="create_product")
    for field in ("name", "type", "base_price", "creation_cost"):
        if data.get(field) in (None, ""):
            raise ValidationError(f"{field} is required", details={field: "required"})

    product = CatalogProduct(created_by=actor.id, is_active=True)
    _apply_product_fields(product, data)
    db.session.add(product)
    commit_or_raise("create product")
    logger.info("Catalog product created id=%s name=%s", product.id, product.name)
    return product


def get_product(product_id) -> CatalogProduct:
    return get_or_raise(CatalogProduct, product_id, "Product")


def list_products(active_only=False, product_type=None):
    q = CatalogProduct.query
    if active_only:
        q = q.filter_by(is_active=True)
    if product_type:
        q = q.filter_by(type=product_type)
    return q.order_by(CatalogProduct.name.asc())


def update_product(actor, product_id, data) -> CatalogProduct:
    require_role(actor, Role.ADMIN, action="update_product")
    product = get_product(product_id)
    _apply_product_fields(product, data)
    commit_or_raise("update product")
    return product


def set_product_active(actor, product_id, is_active) -> CatalogProduct:
    require_role(actor, Role.ADMIN, action="update_product")
    product = get_product(product_id)
    product.is_active = bool(is_active)
    commit_or_raise("toggle product")
    logger.info("Catalog product %s active=%s", product.id, product.is_active)
    return product


# ═══════════════════════════════════════════════════════════════
# Companies
# ═══════════════════════════════════════════════════════════════
def _apply_company_fields(company, data):
    for key in _COMPANY_FIELDS:
        if key not in data:
            continue
        val = data[key]
        if key == "name":
            val = _required_text(val, "name")
        elif key == "address":
            val = val or {}
            if not isinstance(val, dict):
                raise ValidationError("address must be an object", details={"address": "invalid"})
            val = {k: str(val.get(k) or "") for k in _ADDRESS_KEYS}
        else:
            val = (val or "").strip()
        setattr(company, key, val)


def create_company(actor, data) -> Company:
    require_role(actor, Role.ADMIN, action="create_company")
    if not (data.get("name") or "").strip():
        raise ValidationError("name is required", details={"name": "required"})

    company = Company(is_active=True)
    _apply_company_fields(company, data)
    db.session.add(company)
    commit_or_raise("create company")
    logger.info("Company created id=%s name=%s", company.id, company.name)
    return company


def get_company(company_id) -> Company:
    return get_or_raise(Company, company_id, "Company")


def list_companies(active_only=False):
    q = Company.query
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Company.name.asc())


def update_company(actor, company_id, data) -> Company:
    require_role(actor, Role.ADMIN, action="update_company")
    company = get_company(company_id)
    _apply_company_fields(company, data)
    commit_or_raise("update company")
    return company


def set_company_active(actor, company_id, is_active) -> Company:
    require_role(actor, Role.ADMIN, action="update_company")
    company = get_company(company_id)
    company.is_active = bool(is_active)
    commit_or_raise("toggle company")
    return company
