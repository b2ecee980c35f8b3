"""
Order Workflow Service
Blueprint registry and shared request helpers.
"""

from flask import current_app, g, request

from orderflow.core.exceptions import PermissionDenied, ValidationError


def page_window():
    default_limit = current_app.config.get("DEFAULT_PAGE_LIMIT", 50)
    max_limit = current_app.config.get("MAX_PAGE_LIMIT", 500)
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return max(limit, 0), offset


def paginate_query(query):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default DEFAULT_PAGE_LIMIT, capped at MAX_PAGE_LIMIT)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    limit, offset = page_window()
    total = query.count()
    items = query.limit(limit).offset(offset).all()
    return items, total


def paginate_list(items):
    """Same as ``paginate_query`` for an already-materialised list."""
    limit, offset = page_window()
    return items[offset:offset + limit], len(items)


def page_response(items, total, serialise=lambda obj: obj.to_dict()):
    limit, offset = page_window()
    return {
        "items": [serialise(i) for i in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def current_actor():
    """The Actor resolved by middleware/actor_context.py, or raise 403."""
    actor = getattr(g, "actor", None)
    if actor is None:
        raise PermissionDenied(None, request.endpoint or request.path, "authentication required")
    return actor


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def strict_transitions() -> bool:
    return bool(current_app.config.get("ASSIGNMENT_STRICT_TRANSITIONS", True))
