"""Shared helpers for services and blueprints.

get_or_raise:     primary-key lookup raising NotFoundError
parse_datetime:   ISO date/datetime input → aware UTC datetime
commit_or_raise:  commit the session, translating database failures into
                  ConflictError / BackendError after a rollback
"""
import logging
from datetime import date, datetime, time, timezone

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from orderflow.core.exceptions import BackendError, ConflictError, NotFoundError, ValidationError
from orderflow.models import db
from orderflow.models.base import as_utc

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk) if pk else None
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_datetime(value, field="date", required=False):
    """Parse a calendar date or instant into an aware UTC datetime.

    Accepts datetime/date objects and ISO strings (``YYYY-MM-DD``,
    ``YYYY-MM-DDTHH:MM[:SS][Z|±HH:MM]``). A bare date means midnight UTC.
    Returns None for empty input unless ``required``.
    """
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=timezone.utc)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field}: {value!r}. Use YYYY-MM-DD or an ISO-8601 timestamp.",
            details={field: "invalid"},
        ) from exc


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(context="write"):
    """Commit the current session or raise a typed error after rolling back.

    StaleDataError   → ConflictError (another actor changed the record)
    IntegrityError   → ConflictError (duplicate / constraint violation)
    OperationalError → BackendError  (connection / lock issues)
    Other SQLAlchemy → BackendError
    """
    try:
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Stale write during %s: %s", context, exc)
        raise ConflictError(
            f"{context} failed: the record was modified by someone else. Reload and retry."
        ) from exc
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error during %s: %s", context, exc.orig)
        raise ConflictError(f"{context} failed: duplicate or constraint violation") from exc
    except OperationalError as exc:
        db.session.rollback()
        logger.exception("Database operational error during %s", context)
        raise BackendError(f"{context} failed: database unavailable") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Unexpected database error during %s", context)
        raise BackendError(f"{context} failed: database error") from exc
