"""
Health check blueprint.

Endpoints:
    GET /api/v1/health        summary (status + app name)
    GET /api/v1/health/ready  readiness probe, 200 while the process is up
    GET /api/v1/health/live   database round-trip, workflow backlog, settings
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from orderflow.models import db
from orderflow.models.assignment import Assignment
from orderflow.models.order import Order
from orderflow.services.status_rules import CLOSED_ORDER_STATUSES

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("", methods=["GET"])
def health():
    return jsonify({"status": "ok", "app": "orderflow"}), 200


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _database_check():
    t0 = time.perf_counter()
    db.session.execute(db.text("SELECT 1"))
    return {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}


def _backlog_check():
    return {
        "pending_approvals": Assignment.query.filter_by(status="pending").count(),
        "open_orders": Order.query.filter(~Order.status.in_(CLOSED_ORDER_STATUSES)).count(),
    }


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness with dependency status; 503 when the database is unreachable."""
    checks = {}
    healthy = True

    try:
        checks["database"] = _database_check()
        checks["backlog"] = _backlog_check()
    except SQLAlchemyError as exc:
        db.session.rollback()
        checks["database"] = {"status": "error", "detail": str(exc)}
        healthy = False
        logger.error("Health check: database failed: %s", exc)

    checks["rate_limit_storage"] = {
        "status": "redis" if current_app.config.get("REDIS_URL") else "memory",
    }
    checks["app"] = {
        "name": "orderflow",
        "debug": current_app.debug,
        "testing": current_app.testing,
        "strict_transitions": current_app.config.get("ASSIGNMENT_STRICT_TRANSITIONS", True),
    }

    return jsonify({
        "status": "healthy" if healthy else "degraded",
        "checks": checks,
    }), 200 if healthy else 503
