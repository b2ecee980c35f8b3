"""
Order Workflow Service
Notification Blueprint — the calling user's in-app notifications.

Endpoints (all under /api/v1):
    GET  /notifications                 mine, newest first (?unread_only=true, paginated)
    GET  /notifications/unread-count
    POST /notifications/<id>/read
    POST /notifications/read-all
"""

import logging

from flask import Blueprint, jsonify, request

from orderflow.blueprints import page_window, current_actor
from orderflow.services.notification import NotificationService

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")


@notification_bp.route("/notifications", methods=["GET"])
def list_notifications():
    actor = current_actor()
    limit, offset = page_window()
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    items, total = NotificationService.list_for_user(
        actor.id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    })


@notification_bp.route("/notifications/unread-count", methods=["GET"])
def unread_count():
    actor = current_actor()
    return jsonify({"unread_count": NotificationService.unread_count(actor.id)})


@notification_bp.route("/notifications/<int:notification_id>/read", methods=["POST"])
def mark_read(notification_id):
    actor = current_actor()
    notif = NotificationService.mark_read(notification_id, actor.id)
    return jsonify(notif.to_dict())


@notification_bp.route("/notifications/read-all", methods=["POST"])
def mark_all_read():
    actor = current_actor()
    count = NotificationService.mark_all_read(actor.id)
    return jsonify({"marked_read": count})
