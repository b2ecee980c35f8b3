"""
Order Workflow Service
Directory Blueprint — users, catalog products and client companies.

Endpoints (all under /api/v1):
    GET/POST   /users                       list (?role=, ?include_inactive=) / create
    GET        /users/me                    the calling actor's record
    GET        /users/agents                active agents
    GET        /users/employees             active employees (?agent_id=)
    GET/PUT    /users/<id>                  detail / update profile
    POST       /users/<id>/deactivate       deactivate (admin)

    GET/POST   /catalog-products            list (?active=true, ?type=) / create
    GET/PUT    /catalog-products/<id>       detail / update
    POST       /catalog-products/<id>/toggle-active

    GET/POST   /companies                   list (?active=true) / create
    GET/PUT    /companies/<id>              detail / update
    POST       /companies/<id>/toggle-active
"""

import logging

from flask import Blueprint, jsonify, request

from orderflow.blueprints import current_actor, json_body, page_response, paginate_query
from orderflow.core.exceptions import PermissionDenied
from orderflow.models.user import Role
from orderflow.services import catalog_service, user_service
from orderflow.services.permission import require_role

logger = logging.getLogger(__name__)

directory_bp = Blueprint("directory", __name__, url_prefix="/api/v1")


def _flag(name, default="false"):
    return request.args.get(name, default).lower() in ("1", "true", "yes")


# ═══════════════════════════════════════════════════════════════════════════
#  USERS
# ═══════════════════════════════════════════════════════════════════════════

@directory_bp.route("/users", methods=["GET"])
def list_users():
    actor = current_actor()
    require_role(actor, Role.ADMIN, action="list_users")
    query = user_service.list_users(
        role=request.args.get("role"),
        include_inactive=_flag("include_inactive"),
    )
    items, total = paginate_query(query)
    return jsonify(page_response(items, total))


@directory_bp.route("/users", methods=["POST"])
def create_user():
    actor = current_actor()
    data = json_body()
    user = user_service.create_user(
        actor,
        name=data.get("name"),
        email=data.get("email"),
        role=data.get("role"),
        phone=data.get("phone"),
        agent_id=data.get("agent_id") or None,
        skills=data.get("skills"),
    )
    return jsonify(user.to_dict()), 201


@directory_bp.route("/users/me", methods=["GET"])
def get_me():
    actor = current_actor()
    return jsonify(user_service.get_user(actor.id).to_dict())


@directory_bp.route("/users/agents", methods=["GET"])
def list_agents():
    current_actor()
    return jsonify({"items": [u.to_dict() for u in user_service.list_agents()]})


@directory_bp.route("/users/employees", methods=["GET"])
def list_employees():
    """Admins may filter by agent; agents always get their own employees."""
    actor = current_actor()
    require_role(actor, Role.ADMIN, Role.AGENT, action="list_employees")
    agent_id = request.args.get("agent_id")
    if actor.is_agent:
        agent_id = actor.id
    employees = (user_service.list_employees_by_agent(agent_id) if agent_id
                 else user_service.list_employees())
    return jsonify({"items": [u.to_dict() for u in employees]})


@directory_bp.route("/users/<user_id>", methods=["GET"])
def get_user(user_id):
    actor = current_actor()
    user = user_service.get_user(user_id)
    allowed = (actor.is_admin or actor.id == user.id
               or (actor.is_agent and user.agent_id == actor.id))
    if not allowed:
        raise PermissionDenied(actor.id, "view_user")
    return jsonify(user.to_dict())


@directory_bp.route("/users/<user_id>", methods=["PUT"])
def update_user(user_id):
    actor = current_actor()
    user = user_service.update_user(actor, user_id, **json_body())
    return jsonify(user.to_dict())


@directory_bp.route("/users/<user_id>/deactivate", methods=["POST"])
def deactivate_user(user_id):
    actor = current_actor()
    user = user_service.deactivate_user(actor, user_id)
    return jsonify(user.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  CATALOG PRODUCTS
# ═══════════════════════════════════════════════════════════════════════════

@directory_bp.route("/catalog-products", methods=["GET"])
def list_products():
    current_actor()
    query = catalog_service.list_products(
        active_only=_flag("active"), product_type=request.args.get("type"),
    )
    items, total = paginate_query(query)
    return jsonify(page_response(items, total))


@directory_bp.route("/catalog-products", methods=["POST"])
def create_product():
    actor = current_actor()
    product = catalog_service.create_product(actor, json_body())
    return jsonify(product.to_dict()), 201


@directory_bp.route("/catalog-products/<product_id>", methods=["GET"])
def get_product(product_id):
    current_actor()
    return jsonify(catalog_service.get_product(product_id).to_dict())


@directory_bp.route("/catalog-products/<product_id>", methods=["PUT"])
def update_product(product_id):
    actor = current_actor()
    product = catalog_service.update_product(actor, product_id, json_body())
    return jsonify(product.to_dict())


@directory_bp.route("/catalog-products/<product_id>/toggle-active", methods=["POST"])
def toggle_product(product_id):
    actor = current_actor()
    product = catalog_service.get_product(product_id)
    product = catalog_service.set_product_active(actor, product_id, not product.is_active)
    return jsonify(product.to_dict())


# ═══════════════════════════════════════════════════════════════════════════
#  COMPANIES
# ═══════════════════════════════════════════════════════════════════════════

@directory_bp.route("/companies", methods=["GET"])
def list_companies():
    current_actor()
    items, total = paginate_query(catalog_service.list_companies(active_only=_flag("active")))
    return jsonify(page_response(items, total))


@directory_bp.route("/companies", methods=["POST"])
def create_company():
    actor = current_actor()
    company = catalog_service.create_company(actor, json_body())
    return jsonify(company.to_dict()), 201


@directory_bp.route("/companies/<company_id>", methods=["GET"])
def get_company(company_id):
    current_actor()
    return jsonify(catalog_service.get_company(company_id).to_dict())


@directory_bp.route("/companies/<company_id>", methods=["PUT"])
def update_company(company_id):
    actor = current_actor()
    company = catalog_service.update_company(actor, company_id, json_body())
    return jsonify(company.to_dict())


@directory_bp.route("/companies/<company_id>/toggle-active", methods=["POST"])
def toggle_company(company_id):
    actor = current_actor()
    company = catalog_service.get_company(company_id)
    company = catalog_service.set_company_active(actor, company_id, not company.is_active)
    return jsonify(company.to_dict())
