"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in orderflow/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from orderflow.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"

_WRITE_BLUEPRINTS = ("orders", "assignments", "directory", "payments")
_READ_BLUEPRINTS = ("notifications",)


def actor_or_ip_key():
    """Rate limit key: the resolved actor when present, else remote IP."""
    actor = getattr(g, "actor", None)
    if actor is not None:
        return f"actor:{actor.id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - Workflow blueprints (orders, assignments, directory,
          payments):                                            60/minute
        - Notifications:                                        200/minute
        - Health check:                                         exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in _WRITE_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT, key_func=actor_or_ip_key)(bp)

    for bp_name in _READ_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT, key_func=actor_or_ip_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured: workflow: %s, notifications: %s",
                    WRITE_LIMIT, READ_LIMIT)
