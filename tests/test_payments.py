"""
Payment tests (``payment_service`` and ``/api/v1/payments``).

Tests cover:
  - Pending payment written when an assignment completes
  - Manual creation guards (not completed, already paid for)
  - Pay / cancel settlement and the transition guard
  - Listing order, employee scoping and the summary block
"""

from datetime import datetime, timedelta, timezone

import pytest

from orderflow.core.exceptions import (
    ConflictError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from orderflow.models import db
from orderflow.models.notification import Notification
from orderflow.models.payment import Payment
from orderflow.models.user import Actor
from orderflow.services import assignment_lifecycle as lifecycle
from orderflow.services import payment_service

BASE = "/api/v1/payments"


def _complete(make_order, admin, agent, employee, *, stop_at="complete"):
    """Route a one-line order to ``employee`` and walk it to ``stop_at``."""
    order = make_order(lines=1)
    assignment = lifecycle.create_assignment(
        Actor.from_user(agent), order_id=order.id, product_id=order.products[0].id,
        employee_id=employee.id, deadline="2030-01-10",
    )
    lifecycle.approve_assignment(Actor.from_user(admin), assignment.id)
    if stop_at == "approve":
        return assignment
    lifecycle.start_assignment(Actor.from_user(employee), assignment.id)
    lifecycle.complete_assignment(Actor.from_user(employee), assignment.id, "Done")
    return assignment


@pytest.fixture()
def completed(make_order, admin, agent, employee):
    return _complete(make_order, admin, agent, employee)


@pytest.fixture()
def payment(completed):
    return Payment.query.filter_by(assignment_id=completed.id).one()


# ═════════════════════════════════════════════════════════════════════════════
# CREATION
# ═════════════════════════════════════════════════════════════════════════════


class TestCreation:
    def test_completion_records_pending_payment(self, completed, payment, employee):
        assert payment.status == "pending"
        assert payment.employee_id == employee.id
        assert payment.employee_name == "Emil Employee"
        assert payment.order_number == completed.order_number
        assert payment.amount == 16.0  # creation cost 8.0 x quantity 2
        assert payment.completed_at is not None

    def test_employee_notified(self, payment, employee):
        note = Notification.query.filter_by(user_id=employee.id, entity_type="payment").one()
        assert note.title == "Payment Pending"
        assert note.entity_id == payment.id

    def test_no_payment_before_completion(self, make_order, admin, agent, employee):
        _complete(make_order, admin, agent, employee, stop_at="approve")
        assert Payment.query.count() == 0

    def test_completion_payment_not_duplicated(self, completed, payment):
        assert payment_service.build_completion_payment(completed) is None
        assert Payment.query.count() == 1

    def test_manual_create_requires_completed_assignment(self, make_order, admin, agent,
                                                         employee):
        approved = _complete(make_order, admin, agent, employee, stop_at="approve")
        with pytest.raises(ValidationError) as exc:
            payment_service.create_payment(Actor.from_user(admin), assignment_id=approved.id)
        assert exc.value.details == {"assignment_id": "not_completed"}

    def test_manual_create_refuses_second_payment(self, admin, completed, payment):
        with pytest.raises(ConflictError) as exc:
            payment_service.create_payment(Actor.from_user(admin), assignment_id=completed.id)
        assert exc.value.details == {"payment_id": payment.id}

    def test_manual_create_when_payment_missing(self, admin, completed, payment):
        db.session.delete(payment)
        db.session.commit()
        created = payment_service.create_payment(
            Actor.from_user(admin), assignment_id=completed.id, amount="20.555", notes=" bonus ",
        )
        assert (created.amount, created.notes, created.status) == (20.56, "bonus", "pending")

    def test_manual_create_is_admin_only(self, agent, completed):
        with pytest.raises(PermissionDenied):
            payment_service.create_payment(Actor.from_user(agent), assignment_id=completed.id)


# ═════════════════════════════════════════════════════════════════════════════
# SETTLEMENT
# ═════════════════════════════════════════════════════════════════════════════


class TestSettlement:
    def test_mark_paid(self, admin, employee, payment):
        paid = payment_service.mark_paid(Actor.from_user(admin), payment.id,
                                         notes="Bank transfer 2031-04")
        assert paid.status == "paid"
        assert paid.paid_by == admin.id
        assert paid.paid_at is not None
        assert paid.notes == "Bank transfer 2031-04"
        assert Notification.query.filter_by(user_id=employee.id, title="Payment Sent").count() == 1

    def test_mark_paid_corrects_amount(self, admin, payment):
        paid = payment_service.mark_paid(Actor.from_user(admin), payment.id, amount=18)
        assert paid.amount == 18.0

    def test_negative_amount_rejected(self, admin, payment):
        with pytest.raises(ValidationError, match="negative"):
            payment_service.mark_paid(Actor.from_user(admin), payment.id, amount=-1)
        assert payment.status == "pending"

    def test_cannot_pay_twice(self, admin, payment):
        payment_service.mark_paid(Actor.from_user(admin), payment.id)
        with pytest.raises(TransitionError, match="Cannot 'pay' from status 'paid'"):
            payment_service.mark_paid(Actor.from_user(admin), payment.id)

    def test_cancel(self, admin, payment):
        cancelled = payment_service.cancel_payment(Actor.from_user(admin), payment.id,
                                                   notes="Duplicate job")
        assert cancelled.status == "cancelled"
        assert cancelled.cancelled_by == admin.id
        with pytest.raises(TransitionError):
            payment_service.mark_paid(Actor.from_user(admin), payment.id)

    def test_employee_cannot_settle(self, employee, payment):
        with pytest.raises(PermissionDenied):
            payment_service.mark_paid(Actor.from_user(employee), payment.id)


# ═════════════════════════════════════════════════════════════════════════════
# QUERIES
# ═════════════════════════════════════════════════════════════════════════════


class TestQueries:
    def test_latest_completion_first(self, make_order, admin, agent, employee):
        older = _complete(make_order, admin, agent, employee)
        newer = _complete(make_order, admin, agent, employee)
        row = Payment.query.filter_by(assignment_id=older.id).one()
        row.completed_at = datetime.now(timezone.utc) - timedelta(days=3)
        db.session.commit()

        ids = [p.assignment_id for p in payment_service.list_payments_for_employee(employee.id)]
        assert ids == [newer.id, older.id]

    def test_invalid_status_filter(self):
        with pytest.raises(ValidationError):
            payment_service.list_payments(status="refunded")

    def test_summarise(self, make_order, admin, agent, employee):
        for _ in range(3):
            _complete(make_order, admin, agent, employee)
        first, second, _third = payment_service.list_payments().all()
        payment_service.mark_paid(Actor.from_user(admin), first.id, amount=10)
        payment_service.cancel_payment(Actor.from_user(admin), second.id)

        summary = payment_service.summarise(payment_service.list_payments().all())
        assert summary == {
            "count": 3,
            "by_status": {"pending": 1, "paid": 1, "cancelled": 1},
            "pending_amount": 16.0,
            "paid_amount": 10.0,
        }


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════


class TestApi:
    def test_completion_over_http_creates_payment(self, client, as_user, admin, agent,
                                                  employee, make_order):
        order = make_order(lines=1)
        aid = client.post("/api/v1/assignments", json={
            "order_id": order.id, "product_id": order.products[0].id,
            "employee_id": employee.id, "deadline": "2030-01-05",
        }, headers=as_user(agent)).get_json()["id"]
        client.post(f"/api/v1/assignments/{aid}/approve", headers=as_user(admin))
        client.post(f"/api/v1/assignments/{aid}/start", headers=as_user(employee))
        client.post(f"/api/v1/assignments/{aid}/complete", headers=as_user(employee))

        body = client.get(BASE, headers=as_user(employee)).get_json()
        assert body["total"] == 1
        assert body["items"][0]["assignment_id"] == aid
        assert body["summary"]["pending_amount"] == 16.0

    def test_employee_sees_only_own(self, client, as_user, employee, other_employee, payment):
        assert client.get(BASE, headers=as_user(other_employee)).get_json()["total"] == 0
        # employee_id filter is ignored for non-admins
        res = client.get(f"{BASE}?employee_id={employee.id}", headers=as_user(other_employee))
        assert res.get_json()["total"] == 0
        assert client.get(f"{BASE}/{payment.id}", headers=as_user(other_employee)).status_code == 403
        assert client.get(f"{BASE}/{payment.id}", headers=as_user(employee)).status_code == 200

    def test_agent_cannot_list(self, client, as_user, agent, payment):
        assert client.get(BASE, headers=as_user(agent)).status_code == 403

    def test_admin_filters(self, client, as_user, admin, employee, payment):
        res = client.get(f"{BASE}?status=pending&employee_id={employee.id}",
                         headers=as_user(admin))
        assert res.get_json()["total"] == 1
        res = client.get(f"{BASE}?status=paid", headers=as_user(admin))
        assert res.get_json()["total"] == 0
        assert client.get(f"{BASE}?status=bogus", headers=as_user(admin)).status_code == 400

    def test_pay_twice_conflicts(self, client, as_user, admin, payment):
        url = f"{BASE}/{payment.id}/pay"
        res = client.post(url, json={"notes": "Cash"}, headers=as_user(admin))
        assert res.status_code == 200
        assert res.get_json()["status"] == "paid"
        assert res.get_json()["notes"] == "Cash"

        res = client.post(url, headers=as_user(admin))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_cancel(self, client, as_user, admin, payment):
        res = client.post(f"{BASE}/{payment.id}/cancel", json={"notes": "Void"},
                          headers=as_user(admin))
        assert res.status_code == 200
        assert res.get_json()["status"] == "cancelled"

    def test_manual_create_status_codes(self, client, as_user, admin, completed, payment):
        res = client.post(BASE, json={"assignment_id": completed.id}, headers=as_user(admin))
        assert res.status_code == 409
        res = client.post(BASE, json={"assignment_id": "missing"}, headers=as_user(admin))
        assert res.status_code == 404

    def test_unknown_payment(self, client, as_user, admin):
        assert client.get(f"{BASE}/nope", headers=as_user(admin)).status_code == 404
