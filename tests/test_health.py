"""Health endpoints and app-level error handlers."""


def test_health(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "app": "orderflow"}


def test_live_reports_database(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["app"]["strict_transitions"] is True


def test_unknown_route_is_json_404(client):
    res = client.get("/api/v1/nothing-here")
    assert res.status_code == 404
    assert res.get_json()["code"] == "ERR_NOT_FOUND"


def test_method_not_allowed(client):
    res = client.patch("/api/v1/health")
    assert res.status_code == 405


def test_live_reports_backlog(client, make_order):
    make_order(lines=1)
    body = client.get("/api/v1/health/live").get_json()
    assert body["checks"]["backlog"] == {"pending_approvals": 0, "open_orders": 1}
