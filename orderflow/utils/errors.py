"""Standardised API error responses.

Body shape: ``{"error": <message>, "code": <E.*>, "details": {...}?}``

Usage
-----
    from orderflow.utils.errors import api_error, error_from_exception, E

    return api_error(E.NOT_FOUND, "Order not found")
    return error_from_exception(exc)        # any OrderflowError
"""

from __future__ import annotations

from flask import jsonify

from orderflow.core.exceptions import ErrorKind, OrderflowError, TransitionError


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error codes (``ERR_`` prefix)."""

    # 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    # 404
    NOT_FOUND = "ERR_NOT_FOUND"
    # 409
    CONFLICT_STATE = "ERR_CONFLICT_STATE"
    # 403
    FORBIDDEN = "ERR_FORBIDDEN"
    # 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.CONFLICT_STATE: 409,
    E.FORBIDDEN: 403,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}

# ErrorKind → (code, HTTP status)
KIND_TO_ERROR: dict[ErrorKind, tuple[str, int]] = {
    ErrorKind.NOT_FOUND: (E.NOT_FOUND, 404),
    ErrorKind.VALIDATION: (E.VALIDATION_INVALID, 400),
    ErrorKind.CONFLICT: (E.CONFLICT_STATE, 409),
    ErrorKind.FORBIDDEN: (E.FORBIDDEN, 403),
    ErrorKind.BACKEND: (E.DATABASE, 500),
}


def api_error(code: str, message: str, *, status: int | None = None,
              details: dict | None = None):
    """Return ``(jsonify(body), http_status)`` for a standard error.

    ``status`` falls back to the code's default, then 400.
    """
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def error_from_exception(exc: OrderflowError):
    """Build the JSON response for an ``OrderflowError`` from its kind."""
    code, status = KIND_TO_ERROR.get(exc.kind, (E.INTERNAL, 500))
    details = dict(exc.details or {})
    if code == E.VALIDATION_INVALID and "required" in details.values():
        code = E.VALIDATION_REQUIRED
    if isinstance(exc, TransitionError):
        details.setdefault("action", exc.action)
        details.setdefault("current_status", exc.current_status)
    return api_error(code, str(exc), status=status, details=details or None)
