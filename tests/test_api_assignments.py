"""
Assignment API tests (``/api/v1/assignments``).

Tests cover:
  - Create / approve / reject / start / complete over HTTP
  - Product-line rollup after each transition
  - One live assignment per product line
  - Rollup failure reported without undoing the assignment change
  - Status codes for conflict, validation, permission and not-found
  - Approval queue, submitted view and visibility
"""

import pytest

from orderflow.core.exceptions import BackendError
from orderflow.services import order_service

BASE = "/api/v1/assignments"


@pytest.fixture()
def order(make_order):
    return make_order(lines=2)


@pytest.fixture()
def assignment(client, as_user, agent, employee, order):
    res = client.post(BASE, json={
        "order_id": order.id,
        "product_id": order.products[0].id,
        "employee_id": employee.id,
        "deadline": "2030-01-05",
        "notes": "Use the blue yarn",
    }, headers=as_user(agent))
    assert res.status_code == 201
    return res.get_json()


def _line_status(client, as_user, admin, order_id, index=0):
    body = client.get(f"/api/v1/orders/{order_id}", headers=as_user(admin)).get_json()
    return body["products"][index]["status"], body["status"]


# ═════════════════════════════════════════════════════════════════════════════
# CREATE / READ
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateAndRead:
    def test_created_pending(self, assignment):
        assert assignment["status"] == "pending"
        assert assignment["status_label"] == "Waiting for admin approval"
        assert assignment["available_actions"] == ["approve", "reject"]
        assert assignment["notes"] == "Use the blue yarn"

    def test_line_untouched_by_pending(self, client, as_user, admin, order, assignment):
        assert _line_status(client, as_user, admin, order.id) == ("pending", "pending")

    def test_missing_deadline(self, client, as_user, agent, employee, order):
        res = client.post(BASE, json={"order_id": order.id, "product_id": order.products[0].id,
                                      "employee_id": employee.id}, headers=as_user(agent))
        assert res.status_code == 400

    def test_employee_cannot_create(self, client, as_user, employee, order):
        res = client.post(BASE, json={"order_id": order.id, "product_id": order.products[0].id,
                                      "employee_id": employee.id, "deadline": "2030-01-05"},
                          headers=as_user(employee))
        assert res.status_code == 403

    def test_detail_visibility(self, client, as_user, employee, other_employee, assignment):
        url = f"{BASE}/{assignment['id']}"
        assert client.get(url, headers=as_user(employee)).status_code == 200
        assert client.get(url, headers=as_user(other_employee)).status_code == 403

    def test_unknown_assignment(self, client, as_user, admin):
        res = client.post(f"{BASE}/nope/approve", headers=as_user(admin))
        assert res.status_code == 404

    def test_list_is_scoped(self, client, as_user, employee, other_employee, assignment):
        assert client.get(BASE, headers=as_user(employee)).get_json()["total"] == 1
        assert client.get(BASE, headers=as_user(other_employee)).get_json()["total"] == 0

    def test_pending_queue_admin_only(self, client, as_user, admin, agent, assignment):
        res = client.get(f"{BASE}/pending", headers=as_user(admin))
        assert [a["id"] for a in res.get_json()["items"]] == [assignment["id"]]
        assert client.get(f"{BASE}/pending", headers=as_user(agent)).status_code == 403

    def test_submitted_view(self, client, as_user, agent, assignment):
        res = client.get(f"{BASE}/submitted", headers=as_user(agent))
        assert [a["id"] for a in res.get_json()["items"]] == [assignment["id"]]


# ═════════════════════════════════════════════════════════════════════════════
# TRANSITIONS + ROLLUP
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_full_lifecycle_rolls_up(self, client, as_user, admin, employee, order, assignment):
        aid = assignment["id"]

        res = client.post(f"{BASE}/{aid}/approve", headers=as_user(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["assignment"]["status"] == "approved"
        assert body["assignment"]["approved_at"] is not None
        assert body["rollup_error"] is None
        assert body["order"]["status"] == "in_progress"
        assert _line_status(client, as_user, admin, order.id) == ("assigned", "in_progress")

        res = client.post(f"{BASE}/{aid}/start", headers=as_user(employee))
        assert res.get_json()["assignment"]["status"] == "in_progress"
        assert _line_status(client, as_user, admin, order.id) == ("in_progress", "in_progress")

        res = client.post(f"{BASE}/{aid}/complete", json={"notes": "All done"},
                          headers=as_user(employee))
        body = res.get_json()
        assert body["assignment"]["status"] == "completed"
        assert body["assignment"]["completion_notes"] == "All done"
        assert body["assignment"]["available_actions"] == []
        # second line is still pending
        assert _line_status(client, as_user, admin, order.id) == ("completed", "pending")

    def test_approve_sets_line_assignee(self, client, as_user, admin, employee, agent, order,
                                        assignment):
        client.post(f"{BASE}/{assignment['id']}/approve", headers=as_user(admin))
        body = client.get(f"/api/v1/orders/{order.id}", headers=as_user(admin)).get_json()
        line = body["products"][0]
        assert line["assigned_to"] == employee.id
        assert line["assigned_by"] == agent.id
        assert line["assignment_date"] is not None

    def test_reject_resets_line(self, client, as_user, admin, order, assignment):
        res = client.post(f"{BASE}/{assignment['id']}/reject",
                          json={"rejection_reason": "Employee on leave"},
                          headers=as_user(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["assignment"]["status"] == "rejected"
        assert body["assignment"]["rejection_reason"] == "Employee on leave"
        assert _line_status(client, as_user, admin, order.id) == ("pending", "pending")

    def test_reject_accepts_reason_alias(self, client, as_user, admin, assignment):
        res = client.post(f"{BASE}/{assignment['id']}/reject", json={"reason": "No"},
                          headers=as_user(admin))
        assert res.get_json()["assignment"]["rejection_reason"] == "No"

    def test_reject_without_reason(self, client, as_user, admin, assignment):
        res = client.post(f"{BASE}/{assignment['id']}/reject", json={},
                          headers=as_user(admin))
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_REQUIRED"
        assert body["details"] == {"rejection_reason": "required"}

    def test_start_before_approval_conflicts(self, client, as_user, employee, assignment):
        res = client.post(f"{BASE}/{assignment['id']}/start", headers=as_user(employee))
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"action": "start", "current_status": "pending"}

    def test_duplicate_assignment_cannot_reopen_completed_order(self, client, as_user, admin,
                                                                agent, employee, make_order):
        order = make_order(lines=1)
        payload = {"order_id": order.id, "product_id": order.products[0].id,
                   "employee_id": employee.id, "deadline": "2030-01-05"}
        aid = client.post(BASE, json=payload, headers=as_user(agent)).get_json()["id"]
        client.post(f"{BASE}/{aid}/approve", headers=as_user(admin))
        client.post(f"{BASE}/{aid}/start", headers=as_user(employee))
        res = client.post(f"{BASE}/{aid}/complete", headers=as_user(employee))
        assert res.get_json()["order"]["status"] == "completed"

        res = client.post(BASE, json=payload, headers=as_user(agent))
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_CONFLICT_STATE"
        assert body["details"] == {"product_id": "already_assigned", "assignment_id": aid}
        assert _line_status(client, as_user, admin, order.id) == ("completed", "completed")

    def test_agent_cannot_approve(self, client, as_user, agent, assignment):
        res = client.post(f"{BASE}/{assignment['id']}/approve", headers=as_user(agent))
        assert res.status_code == 403

    def test_rollup_failure_keeps_assignment_change(self, client, as_user, admin, order,
                                                    assignment, monkeypatch):
        def _boom(_assignment):
            raise BackendError("orders table locked")

        monkeypatch.setattr(order_service, "rollup_assignment", _boom)
        res = client.post(f"{BASE}/{assignment['id']}/approve", headers=as_user(admin))
        assert res.status_code == 200
        body = res.get_json()
        assert body["assignment"]["status"] == "approved"
        assert body["order"] is None
        assert body["rollup_error"] == {"kind": "backend", "error": "orders table locked"}

        monkeypatch.undo()
        detail = client.get(f"{BASE}/{assignment['id']}", headers=as_user(admin)).get_json()
        assert detail["status"] == "approved"
        assert _line_status(client, as_user, admin, order.id) == ("pending", "pending")


class TestPermissiveMode:
    @pytest.fixture()
    def permissive(self, app):
        app.config["ASSIGNMENT_STRICT_TRANSITIONS"] = False
        yield
        app.config["ASSIGNMENT_STRICT_TRANSITIONS"] = True

    def test_start_without_approval(self, client, as_user, admin, employee, order,
                                    assignment, permissive):
        res = client.post(f"{BASE}/{assignment['id']}/start", headers=as_user(employee))
        assert res.status_code == 200
        assert res.get_json()["assignment"]["status"] == "in_progress"
        assert _line_status(client, as_user, admin, order.id) == ("in_progress", "in_progress")
