"""
Tests for shared helpers: datetime parsing, commit error mapping, order
numbers and the API error envelope.
"""

from datetime import date, datetime, timezone

import pytest

from orderflow.core.exceptions import (
    BackendError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from orderflow.models import db
from orderflow.models.user import User
from orderflow.utils.errors import E, error_from_exception
from orderflow.utils.helpers import commit_or_raise, get_or_raise, parse_datetime


class TestParseDatetime:
    def test_date_only_is_midnight_utc(self):
        assert parse_datetime("2030-05-01") == datetime(2030, 5, 1, tzinfo=timezone.utc)

    def test_z_suffix(self):
        assert parse_datetime("2030-05-01T08:30:00Z") == \
            datetime(2030, 5, 1, 8, 30, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        assert parse_datetime("2030-05-01T10:00:00+02:00") == \
            datetime(2030, 5, 1, 8, 0, tzinfo=timezone.utc)

    def test_date_object(self):
        assert parse_datetime(date(2030, 5, 1)).tzinfo is timezone.utc

    def test_empty_is_none_unless_required(self):
        assert parse_datetime("") is None
        with pytest.raises(ValidationError, match="deadline is required"):
            parse_datetime(None, "deadline", required=True)

    def test_garbage(self):
        with pytest.raises(ValidationError) as exc:
            parse_datetime("soon", "deadline")
        assert exc.value.details == {"deadline": "invalid"}


class TestCommitOrRaise:
    def test_stale_write_is_conflict(self, make_order):
        order = make_order(lines=1)
        db.session.execute(db.text("UPDATE orders SET version = version + 1 WHERE id = :id"),
                           {"id": order.id})
        order.notes = "edited elsewhere"
        with pytest.raises(ConflictError, match="modified by someone else"):
            commit_or_raise("update order")

    def test_unique_violation_is_conflict(self, admin):
        db.session.add(User(name="Twin", email=admin.email, role="admin"))
        with pytest.raises(ConflictError):
            commit_or_raise("create user")

    def test_get_or_raise(self, admin):
        assert get_or_raise(User, admin.id).id == admin.id
        with pytest.raises(NotFoundError, match="User id=nobody not found"):
            get_or_raise(User, "nobody")


@pytest.mark.parametrize("exc,code,status", [
    (NotFoundError("Order", "o1"), E.NOT_FOUND, 404),
    (ValidationError("bad"), E.VALIDATION_INVALID, 400),
    (TransitionError("assignment", "a1", "start", "pending"), E.CONFLICT_STATE, 409),
    (ConflictError("dup"), E.CONFLICT_STATE, 409),
    (PermissionDenied("u1", "approve"), E.FORBIDDEN, 403),
    (BackendError("down"), E.DATABASE, 500),
])
def test_error_mapping(app, exc, code, status):
    with app.test_request_context():
        response, http_status = error_from_exception(exc)
    assert http_status == status
    assert response.get_json()["code"] == code
