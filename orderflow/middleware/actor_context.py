"""
Actor resolution middleware.

Identity is established upstream (reverse proxy / identity provider) and
forwarded as a trusted header (``ACTOR_HEADER``, default ``X-User-Id``).
Before each API request the header is resolved against the user directory
and an ``Actor`` is stored on ``g.actor`` (None when absent, unknown or
inactive). Blueprints read ``g.actor`` and pass it explicitly to every
service call; services never read ``g`` themselves.
"""

import logging

from flask import g, request

from orderflow.models import db
from orderflow.models.user import Actor, User

logger = logging.getLogger(__name__)


def resolve_actor(user_id):
    """Load an active user and wrap it as an Actor, or return None."""
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        logger.info("Actor header references unknown or inactive user %s", user_id)
        return None
    return Actor.from_user(user)


def init_actor_context(app):
    """Register the before_request hook that populates ``g.actor``."""
    header = app.config.get("ACTOR_HEADER", "X-User-Id")

    @app.before_request
    def _resolve_actor():
        g.actor = None
        if not request.path.startswith("/api/"):
            return
        g.actor = resolve_actor(request.headers.get(header, "").strip())
