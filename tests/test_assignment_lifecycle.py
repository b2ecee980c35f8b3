"""
Assignment lifecycle tests (``orderflow/services/assignment_lifecycle.py``).

Tests cover:
  - Creation (pending, agent/employee rules, notifications)
  - Strict transitions and their side effects
  - Rejection reason and notification fan-out
  - Permissive (legacy) mode
  - Role and ownership checks
  - Queries and visibility
"""

import pytest

from orderflow.core.exceptions import (
    ErrorKind,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from orderflow.models.notification import Notification
from orderflow.models.user import Actor
from orderflow.services import assignment_lifecycle as lifecycle


@pytest.fixture()
def order(make_order):
    return make_order(lines=2)


@pytest.fixture()
def pending(order, agent, employee):
    """A pending assignment of line 0 created by the supervising agent."""
    return lifecycle.create_assignment(
        Actor.from_user(agent),
        order_id=order.id,
        product_id=order.products[0].id,
        employee_id=employee.id,
        deadline="2030-01-10",
        notes="Rush",
    )


def _titles(user_id):
    return [n.title for n in Notification.query.filter_by(user_id=user_id).all()]


# ═════════════════════════════════════════════════════════════════════════════
# CREATE
# ═════════════════════════════════════════════════════════════════════════════


class TestCreate:
    def test_created_pending_with_denormalised_fields(self, pending, order, agent, employee):
        assert pending.status == "pending"
        assert pending.order_number == order.order_number
        assert pending.product_name == order.products[0].product_name
        assert pending.product_specs == order.products[0].specifications
        assert pending.quantity == 2
        assert pending.agent_id == agent.id
        assert pending.assigned_by == agent.id
        assert pending.employee_name == employee.name
        assert pending.approved_at is None

    def test_does_not_touch_product_line(self, pending, order):
        assert order.products[0].status == "pending"
        assert order.status == "pending"

    def test_notifies_employee_and_admins(self, pending, employee, admin):
        assert _titles(employee.id) == ["New Assignment"]
        assert _titles(admin.id) == ["Approval Required"]

    def test_deadline_required(self, order, agent, employee):
        with pytest.raises(ValidationError, match="deadline is required"):
            lifecycle.create_assignment(Actor.from_user(agent), order_id=order.id,
                                        product_id=order.products[0].id,
                                        employee_id=employee.id, deadline=None)

    def test_agent_limited_to_own_employees(self, order, agent, other_employee):
        with pytest.raises(PermissionDenied, match="not supervised"):
            lifecycle.create_assignment(Actor.from_user(agent), order_id=order.id,
                                        product_id=order.products[0].id,
                                        employee_id=other_employee.id, deadline="2030-01-10")

    def test_admin_defaults_agent_to_supervisor(self, order, admin, other_agent, other_employee):
        a = lifecycle.create_assignment(Actor.from_user(admin), order_id=order.id,
                                        product_id=order.products[1].id,
                                        employee_id=other_employee.id, deadline="2030-01-10")
        assert a.agent_id == other_agent.id
        assert a.assigned_by == admin.id

    def test_employee_cannot_create(self, order, employee):
        with pytest.raises(PermissionDenied):
            lifecycle.create_assignment(Actor.from_user(employee), order_id=order.id,
                                        product_id=order.products[0].id,
                                        employee_id=employee.id, deadline="2030-01-10")

    def test_unknown_line(self, order, agent, employee):
        with pytest.raises(NotFoundError, match="Product line"):
            lifecycle.create_assignment(Actor.from_user(agent), order_id=order.id,
                                        product_id="missing", employee_id=employee.id,
                                        deadline="2030-01-10")


# ═════════════════════════════════════════════════════════════════════════════
# TRANSITIONS
# ═════════════════════════════════════════════════════════════════════════════


class TestTransitions:
    def test_happy_path(self, pending, admin, employee):
        a = lifecycle.approve_assignment(Actor.from_user(admin), pending.id)
        assert a.status == "approved"
        assert a.approved_by == admin.id
        assert a.approved_at is not None
        assert a.reviewed_by == admin.id

        a = lifecycle.start_assignment(Actor.from_user(employee), pending.id)
        assert a.status == "in_progress"
        assert a.started_at is not None

        a = lifecycle.complete_assignment(Actor.from_user(employee), pending.id, " Done ")
        assert a.status == "completed"
        assert a.completed_at is not None
        assert a.completion_notes == "Done"
        assert a.is_terminal

    def test_reject_requires_reason(self, pending, admin):
        with pytest.raises(ValidationError, match="rejection_reason is required"):
            lifecycle.reject_assignment(Actor.from_user(admin), pending.id, "   ")
        assert lifecycle.get_assignment(pending.id).status == "pending"

    def test_reject_notifies_employee_and_agent_once(self, pending, admin, agent, employee):
        a = lifecycle.reject_assignment(Actor.from_user(admin), pending.id, "Wrong size")
        assert a.status == "rejected"
        assert a.rejection_reason == "Wrong size"
        assert a.rejected_by == admin.id

        for uid in (employee.id, agent.id):
            rejected = Notification.query.filter_by(user_id=uid,
                                                    title="Assignment Rejected").all()
            assert len(rejected) == 1
            assert rejected[0].message.endswith("Reason: Wrong size")

    def test_complete_notifies_agent_and_admins(self, pending, admin, agent, employee):
        lifecycle.approve_assignment(Actor.from_user(admin), pending.id)
        lifecycle.start_assignment(Actor.from_user(employee), pending.id)
        lifecycle.complete_assignment(Actor.from_user(employee), pending.id)
        assert "Assignment Completed" in _titles(agent.id)
        assert "Assignment Completed" in _titles(admin.id)
        assert "Assignment Completed" not in _titles(employee.id)

    @pytest.mark.parametrize("action", ["start", "complete"])
    def test_strict_mode_blocks_skipping_approval(self, pending, admin, action):
        with pytest.raises(TransitionError) as exc:
            lifecycle.transition_assignment(Actor.from_user(admin), pending.id, action)
        assert exc.value.kind is ErrorKind.CONFLICT
        assert exc.value.current_status == "pending"

    def test_terminal_states_are_final(self, pending, admin):
        lifecycle.reject_assignment(Actor.from_user(admin), pending.id, "No")
        with pytest.raises(TransitionError):
            lifecycle.approve_assignment(Actor.from_user(admin), pending.id)

    def test_unknown_action(self, pending, admin):
        with pytest.raises(TransitionError, match="Unknown action"):
            lifecycle.transition_assignment(Actor.from_user(admin), pending.id, "archive")


class TestPermissiveMode:
    """Legacy behaviour: any non-identical status can be overwritten."""

    def test_approve_after_reject(self, pending, admin):
        lifecycle.reject_assignment(Actor.from_user(admin), pending.id, "No", strict=False)
        a = lifecycle.approve_assignment(Actor.from_user(admin), pending.id, strict=False)
        assert a.status == "approved"

    def test_start_from_pending(self, pending, employee):
        a = lifecycle.start_assignment(Actor.from_user(employee), pending.id, strict=False)
        assert a.status == "in_progress"

    def test_same_status_still_rejected(self, pending, admin):
        lifecycle.approve_assignment(Actor.from_user(admin), pending.id, strict=False)
        with pytest.raises(TransitionError, match="already"):
            lifecycle.approve_assignment(Actor.from_user(admin), pending.id, strict=False)

    def test_available_actions(self, pending):
        assert lifecycle.get_available_actions(pending) == ["approve", "reject"]
        assert lifecycle.get_available_actions(pending, strict=False) == \
            ["approve", "reject", "start", "complete"]


class TestPermissions:
    def test_agent_cannot_approve(self, pending, agent):
        with pytest.raises(PermissionDenied):
            lifecycle.approve_assignment(Actor.from_user(agent), pending.id)

    def test_employee_cannot_approve(self, pending, employee):
        with pytest.raises(PermissionDenied):
            lifecycle.approve_assignment(Actor.from_user(employee), pending.id)

    def test_other_employee_cannot_start(self, pending, admin, other_employee):
        lifecycle.approve_assignment(Actor.from_user(admin), pending.id)
        with pytest.raises(PermissionDenied, match="another employee"):
            lifecycle.start_assignment(Actor.from_user(other_employee), pending.id)

    def test_missing_actor(self, pending):
        with pytest.raises(PermissionDenied, match="authentication required"):
            lifecycle.approve_assignment(None, pending.id)


# ═════════════════════════════════════════════════════════════════════════════
# QUERIES
# ═════════════════════════════════════════════════════════════════════════════


class TestQueries:
    def test_pending_queue(self, pending, admin):
        assert [a.id for a in lifecycle.list_pending()] == [pending.id]
        lifecycle.approve_assignment(Actor.from_user(admin), pending.id)
        assert lifecycle.list_pending() == []

    def test_submitted_by_agent_hides_work_states(self, pending, admin, agent, employee):
        assert [a.id for a in lifecycle.list_submitted_by_agent(agent.id)] == [pending.id]
        lifecycle.approve_assignment(Actor.from_user(admin), pending.id)
        assert len(lifecycle.list_submitted_by_agent(agent.id)) == 1
        lifecycle.start_assignment(Actor.from_user(employee), pending.id)
        assert lifecycle.list_submitted_by_agent(agent.id) == []

    def test_filters(self, pending, order, agent, employee):
        assert [a.id for a in lifecycle.list_by_agent(agent.id)] == [pending.id]
        assert [a.id for a in lifecycle.list_by_employee(employee.id)] == [pending.id]
        assert [a.id for a in lifecycle.list_by_order(order.id)] == [pending.id]
        assert len(lifecycle.list_all()) == 1

    def test_invalid_status_filter(self):
        with pytest.raises(ValidationError):
            lifecycle.list_assignments(status="archived")

    def test_visibility(self, pending, admin, agent, other_agent, employee, other_employee):
        assert lifecycle.can_view(Actor.from_user(admin), pending)
        assert lifecycle.can_view(Actor.from_user(agent), pending)
        assert lifecycle.can_view(Actor.from_user(employee), pending)
        assert not lifecycle.can_view(Actor.from_user(other_agent), pending)
        assert not lifecycle.can_view(Actor.from_user(other_employee), pending)

        query = lifecycle.visible_to(Actor.from_user(other_employee),
                                     lifecycle.list_assignments())
        assert query.all() == []
