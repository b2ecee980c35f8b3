"""
Order Workflow Service
Flask Application Factory.

Usage:
    from orderflow import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from orderflow.config import config
from orderflow.core.exceptions import ErrorKind, OrderflowError
from orderflow.middleware.actor_context import init_actor_context
from orderflow.middleware.logging_config import configure_logging
from orderflow.middleware.rate_limiter import init_rate_limits
from orderflow.middleware.timing import init_request_timing
from orderflow.models import db
from orderflow.utils.errors import E, api_error, error_from_exception

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # limits are attached per blueprint
    storage_uri=os.getenv("REDIS_URL") or "memory://"
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)

    # Timing first, then actor resolution, then the limiter (keys on g.actor)
    init_request_timing(app)
    init_actor_context(app)
    limiter.init_app(app)

    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # Register models with SQLAlchemy metadata
    from orderflow.models import assignment as _assignment_models      # noqa: F401
    from orderflow.models import catalog as _catalog_models            # noqa: F401
    from orderflow.models import notification as _notification_models  # noqa: F401
    from orderflow.models import order as _order_models                # noqa: F401
    from orderflow.models import payment as _payment_models            # noqa: F401
    from orderflow.models import user as _user_models                  # noqa: F401

    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    from orderflow.blueprints.assignment_bp import assignment_bp
    from orderflow.blueprints.directory_bp import directory_bp
    from orderflow.blueprints.health_bp import health_bp
    from orderflow.blueprints.notification_bp import notification_bp
    from orderflow.blueprints.order_bp import order_bp
    from orderflow.blueprints.payment_bp import payment_bp

    app.register_blueprint(order_bp)
    app.register_blueprint(assignment_bp)
    app.register_blueprint(directory_bp)
    app.register_blueprint(payment_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(OrderflowError)
    def handle_domain_error(exc):
        if exc.kind is ErrorKind.BACKEND:
            logger.error("Backend failure on %s %s: %s", request.method, request.path, exc,
                         exc_info=exc.__cause__ is not None)
        else:
            logger.info("%s on %s %s: %s", exc.kind.value, request.method, request.path, exc)
        return error_from_exception(exc)

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return api_error(E.VALIDATION_INVALID, e.description, status=415)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.VALIDATION_INVALID, "Too many requests", status=429,
                         details={"limit": str(e.description)})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
