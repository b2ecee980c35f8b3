"""
Shared pytest fixtures for the order workflow test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin / agent / employee / other_employee / other_agent: directory users
    - sweater / tshirt: catalog products
    - company: client company
    - as_user: builds the identity header for API calls
    - make_order: creates an order through the order service
"""

import pytest

from orderflow import create_app
from orderflow.models import db as _db
from orderflow.models.catalog import CatalogProduct, Company
from orderflow.models.user import Actor, User
from orderflow.services import order_service


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Directory fixtures ───────────────────────────────────────────────────


def _user(name, email, role, agent=None):
    user = User(name=name, email=email, role=role, agent_id=agent.id if agent else None,
                skills=[], is_active=True)
    _db.session.add(user)
    _db.session.commit()
    return user


@pytest.fixture()
def admin():
    return _user("Ada Admin", "ada@example.com", "admin")


@pytest.fixture()
def agent():
    return _user("Arlo Agent", "arlo@example.com", "agent")


@pytest.fixture()
def other_agent():
    return _user("Opal Agent", "opal@example.com", "agent")


@pytest.fixture()
def employee(agent):
    return _user("Emil Employee", "emil@example.com", "employee", agent=agent)


@pytest.fixture()
def other_employee(other_agent):
    return _user("Eve Employee", "eve@example.com", "employee", agent=other_agent)


@pytest.fixture()
def actor():
    """Wrap a User as the Actor the services expect."""
    return Actor.from_user


@pytest.fixture()
def as_user(app):
    """Identity header for an API call made as ``user``."""
    header = app.config["ACTOR_HEADER"]

    def _headers(user):
        return {header: user.id}

    return _headers


# ── Master data fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def sweater(admin):
    product = CatalogProduct(name="Cable Knit Sweater", type="sweater",
                             base_price=20.0, creation_cost=8.0, estimated_hours=6,
                             skills_required=["knitting"], created_by=admin.id)
    _db.session.add(product)
    _db.session.commit()
    return product


@pytest.fixture()
def tshirt(admin):
    product = CatalogProduct(name="Printed T-Shirt", type="tshirt",
                             base_price=12.5, creation_cost=4.0, estimated_hours=1,
                             skills_required=["printing"], created_by=admin.id)
    _db.session.add(product)
    _db.session.commit()
    return product


@pytest.fixture()
def company():
    c = Company(name="Northwind Boutique", email="buyer@northwind.example",
                contact_person="Nora North",
                address={"street": "1 Loom Lane", "city": "Leeds", "state": "",
                         "zip_code": "LS1", "country": "UK"})
    _db.session.add(c)
    _db.session.commit()
    return c


@pytest.fixture()
def make_order(admin, company, sweater):
    """Create an order with ``lines`` identical sweater lines (qty 2 each)."""

    def _make(lines=2, **kwargs):
        products = [
            {"catalog_product_id": sweater.id, "quantity": 2,
             "specifications": f"Navy, size {size}"}
            for size in ("S", "M", "L", "XL")[:lines]
        ]
        kwargs.setdefault("due_date", "2030-01-15")
        return order_service.create_order(
            Actor.from_user(admin), company_id=company.id, products=products, **kwargs,
        )

    return _make
