"""
Shared column helpers and serialisation conventions.

Ids are UUID strings generated in Python. Timestamps are stored as
timezone-aware UTC values; SQLite hands them back naive, so every
comparison goes through ``as_utc``.

Read convention: a missing creation/deadline timestamp is reported as
"now" rather than null (``iso_or_now``). Optional lifecycle stamps use
``iso`` and stay null.
"""

import uuid
from datetime import datetime, timezone


def new_id():
    return str(uuid.uuid4())


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def iso_or_now(value):
    """
    ISO string for ``value``, or the current instant when it is missing.

    Display fallback only. Flags derived from the same column
    (``is_overdue``, ``priority``) are computed from the stored value, so an
    undated order or line is never overdue and has ``priority`` None.
    """
    return (as_utc(value) or utcnow()).isoformat()
