"""
Notification tests: service helpers, best-effort delivery and the API.
"""

import pytest

from orderflow.core.exceptions import NotFoundError, ValidationError
from orderflow.models.notification import Notification
from orderflow.services.notification import NotificationService, notify_safely

BASE = "/api/v1/notifications"


def _notify(user, title="Hello"):
    return NotificationService.create(user_id=user.id, title=title, message="m",
                                      category="order", severity="info")


class TestService:
    def test_unknown_category_rejected(self, employee):
        with pytest.raises(ValidationError, match="category"):
            NotificationService.create(user_id=employee.id, title="x", category="weather")

    def test_broadcast_dedupes_recipients(self, employee, agent):
        created = NotificationService.broadcast(
            user_ids=[employee.id, agent.id, employee.id], title="Heads up",
        )
        assert len(created) == 2

    def test_notify_admins(self, admin, agent):
        NotificationService.notify_admins(title="Review", category="assignment",
                                          severity="warning")
        assert Notification.query.filter_by(user_id=admin.id).count() == 1
        assert Notification.query.filter_by(user_id=agent.id).count() == 0

    def test_mark_read_of_other_user(self, employee, agent):
        notif = _notify(employee)
        with pytest.raises(NotFoundError):
            NotificationService.mark_read(notif.id, agent.id)

    def test_notify_safely_swallows_failure(self, employee, caplog):
        def _broken(*_args):
            raise RuntimeError("mail relay down")

        assert notify_safely(_broken, employee) is None
        assert "Notification _broken failed" in caplog.text

    def test_notify_safely_returns_result(self, employee):
        notif = notify_safely(_notify, employee, "Ping")
        assert notif.title == "Ping"


class TestAPI:
    def test_list_and_unread_count(self, client, as_user, employee, agent):
        _notify(employee, "one")
        _notify(employee, "two")
        _notify(agent, "other")

        body = client.get(BASE, headers=as_user(employee)).get_json()
        assert body["total"] == 2
        assert [n["title"] for n in body["items"]] == ["two", "one"]

        res = client.get(f"{BASE}/unread-count", headers=as_user(employee))
        assert res.get_json() == {"unread_count": 2}

    def test_mark_read(self, client, as_user, employee):
        notif = _notify(employee)
        res = client.post(f"{BASE}/{notif.id}/read", headers=as_user(employee))
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True
        body = client.get(f"{BASE}?unread_only=true", headers=as_user(employee)).get_json()
        assert body["total"] == 0

    def test_mark_read_foreign_is_404(self, client, as_user, employee, agent):
        notif = _notify(employee)
        res = client.post(f"{BASE}/{notif.id}/read", headers=as_user(agent))
        assert res.status_code == 404

    def test_mark_all_read(self, client, as_user, employee):
        _notify(employee)
        _notify(employee)
        res = client.post(f"{BASE}/read-all", headers=as_user(employee))
        assert res.get_json() == {"marked_read": 2}
        res = client.get(f"{BASE}/unread-count", headers=as_user(employee))
        assert res.get_json()["unread_count"] == 0
