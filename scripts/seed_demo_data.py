#!/usr/bin/env python3
"""
Order Workflow Service — Demo Data Seed Script.

Seeds an admin, an agent with two employees, the four catalog product
types and one client company. Records are looked up by email / name, so
running the script twice does not duplicate anything.

Usage:
    python scripts/seed_demo_data.py
    python scripts/seed_demo_data.py --reset      # drop + recreate tables first
"""

import argparse
import sys

sys.path.insert(0, ".")

from orderflow import create_app
from orderflow.models import db
from orderflow.models.catalog import CatalogProduct, Company
from orderflow.models.user import User

# ── Seed data ────────────────────────────────────────────────────────────────

ADMIN = {"name": "Ayla Admin", "email": "admin@auromix.local", "role": "admin"}
AGENT = {"name": "Deniz Agent", "email": "agent@auromix.local", "role": "agent",
         "phone": "+90 555 000 0001"}
EMPLOYEES = [
    {"name": "Elif Knitter", "email": "elif@auromix.local", "role": "employee",
     "skills": ["knitting", "sweater"]},
    {"name": "Mert Printer", "email": "mert@auromix.local", "role": "employee",
     "skills": ["screen_print", "tshirt"]},
]

CATALOG = [
    {"name": "Classic Wool Sweater", "type": "sweater", "base_price": 60.0,
     "creation_cost": 25.0, "estimated_hours": 6, "skills_required": ["knitting"]},
    {"name": "Printed Cotton T-Shirt", "type": "tshirt", "base_price": 10.0,
     "creation_cost": 4.0, "estimated_hours": 0.5, "skills_required": ["screen_print"]},
    {"name": "Thread Wall Art", "type": "thread_craft", "base_price": 50.0,
     "creation_cost": 20.0, "estimated_hours": 4, "skills_required": ["string_art"]},
    {"name": "Macrame Plant Hanger", "type": "handmade_craft", "base_price": 18.0,
     "creation_cost": 6.0, "estimated_hours": 1.5, "skills_required": ["macrame"]},
]

COMPANY = {
    "name": "Bosphorus Boutique Ltd.",
    "email": "orders@bosphorus-boutique.local",
    "phone": "+90 212 000 0000",
    "contact_person": "Selin Yildiz",
    "address": {"street": "Istiklal Cd. 1", "city": "Istanbul", "state": "",
                "zip_code": "34430", "country": "TR"},
}


def _get_or_create_user(data, agent_id=None):
    user = User.query.filter_by(email=data["email"]).first()
    if user:
        return user, False
    user = User(agent_id=agent_id, **data)
    db.session.add(user)
    db.session.flush()
    return user, True


def seed_all(verbose=False):
    created = 0

    admin, new = _get_or_create_user(ADMIN)
    created += new
    agent, new = _get_or_create_user(AGENT)
    created += new
    for emp in EMPLOYEES:
        user, new = _get_or_create_user(emp, agent_id=agent.id)
        created += new
        if verbose:
            print(f"   employee {user.email} → agent {agent.email}")

    for item in CATALOG:
        if CatalogProduct.query.filter_by(name=item["name"]).first():
            continue
        db.session.add(CatalogProduct(created_by=admin.id, **item))
        created += 1

    if not Company.query.filter_by(name=COMPANY["name"]).first():
        db.session.add(Company(**COMPANY))
        created += 1

    db.session.commit()

    print(f"\n{'='*60}")
    print(f"DEMO DATA SEED COMPLETE — {created} new records")
    print(f"Admin actor header: X-User-Id: {admin.id}")
    print(f"Agent actor header: X-User-Id: {agent.id}")
    print(f"{'='*60}\n")


def main():
    parser = argparse.ArgumentParser(description="Seed demo data")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    app = create_app()
    print(f"DB: {app.config['SQLALCHEMY_DATABASE_URI']}\n")
    with app.app_context():
        if args.reset:
            db.drop_all()
        db.create_all()
        seed_all(verbose=args.verbose)


if __name__ == "__main__":
    main()
