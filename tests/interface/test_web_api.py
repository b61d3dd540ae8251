"""HTTP API 测试（FastAPI TestClient）"""
import pytest
from fastapi.testclient import TestClient

from interface.web.auth import create_token
from interface.web.channel import WebChannel

SECRET = "test-secret"
SUPER = {"x-super-key": "root-key"}


@pytest.fixture
def web(lifecycle, archive_manager):
    return WebChannel(
        lifecycle,
        archive_manager,
        username="admin",
        password="12345",
        secret_key=SECRET,
        super_key="root-key",
        static_dir=None,
    )


@pytest.fixture
def client(web):
    with TestClient(web.create_app()) as c:
        yield c


@pytest.fixture
def auth(client):
    resp = client.post("/api/login", json={"username": "admin", "password": "12345"})
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _create(client, auth, **body):
    resp = client.post("/api/order", json=body, headers=auth)
    assert resp.status_code == 200, resp.text
    return resp.json()["order"]


# ==================== 认证 ====================

class TestAuth:

    def test_login_ok(self, client):
        resp = client.post("/api/login", json={"username": "admin", "password": "12345"})
        assert resp.status_code == 200
        assert resp.json()["ok"] is True
        assert resp.json()["token"]

    def test_login_wrong_password(self, client):
        resp = client.post("/api/login", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401
        assert resp.json() == {"ok": False, "error": "Invalid username/password"}

    def test_login_missing_credentials(self, client):
        resp = client.post("/api/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_no_token(self, client):
        resp = client.get("/api/orders")
        assert resp.status_code == 401
        assert resp.json()["error"] == "No token"

    def test_bad_token(self, client):
        resp = client.get("/api/orders", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token invalid or expired"

    def test_token_signed_with_other_secret(self, client):
        token = create_token("admin", "other-secret")
        resp = client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_expired_token(self, client):
        token = create_token("admin", SECRET, expire_hours=-1)
        resp = client.get("/api/orders", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["error"] == "Token invalid or expired"

    def test_ping_is_public(self, client):
        assert client.get("/api/ping").json() == {"ok": True, "msg": "pong"}


# ==================== 订单 ====================

class TestOrders:

    def test_create_and_list(self, client, auth):
        order = _create(client, auth, ps="PS2", type="cash", amount=15000)
        assert order["orderId"] == 1
        assert order["status"] == "process"
        assert order["startTime"].endswith("+05:00")

        listed = client.get("/api/orders", headers=auth).json()
        assert [o["id"] for o in listed] == [order["id"]]

    def test_create_validation_errors(self, client, auth):
        resp = client.post("/api/order", json={"type": "cash", "amount": 0}, headers=auth)
        assert resp.status_code == 400
        assert resp.json()["ok"] is False

        resp = client.post("/api/order", json={"type": "credit"}, headers=auth)
        assert resp.status_code == 400

    def test_edit(self, client, auth):
        order = _create(client, auth, type="cash", amount=15000)
        resp = client.put(f"/api/order/{order['orderId']}", json={"amount": 30000}, headers=auth)
        assert resp.status_code == 200
        assert resp.json()["order"]["summa"] == 30000

    def test_edit_vip_increase_rejected(self, client, auth):
        order = _create(client, auth, type="vip", amount=5000)
        resp = client.put(f"/api/order/{order['id']}", json={"amount": 6000}, headers=auth)
        assert resp.status_code == 400

    def test_edit_unknown_order(self, client, auth):
        resp = client.put("/api/order/999", json={"ps": "PS5"}, headers=auth)
        assert resp.status_code == 404
        assert resp.json() == {"ok": False, "error": "Not found"}

    def test_complete_vip(self, client, auth, clock):
        order = _create(client, auth, type="vip")
        clock.advance(minutes=95)

        resp = client.post(f"/api/complete/{order['externalId']}", headers=auth)

        body = resp.json()
        assert resp.status_code == 200
        assert body["order"]["status"] == "completed"
        assert body["order"]["summa"] == 24000
        assert body["elapsedMinutes"] == 95

        again = client.post(f"/api/complete/{order['id']}", headers=auth)
        assert again.status_code == 400

    def test_soft_delete_variants_and_restore(self, client, auth):
        a = _create(client, auth)
        b = _create(client, auth)

        assert client.delete(f"/api/order/{a['id']}", headers=auth).json()["order"]["status"] == "trash"
        assert client.delete(f"/api/orders/{b['id']}", headers=auth).json()["order"]["status"] == "trash"

        restored = client.post(f"/api/restore/{a['id']}", headers=auth).json()["order"]
        assert restored["status"] == "completed"
        assert [o["id"] for o in client.get("/api/completed", headers=auth).json()] == [a["id"]]

    def test_delete_completed_only(self, client, auth):
        order = _create(client, auth)
        resp = client.delete(f"/api/completed/{order['id']}", headers=auth)
        assert resp.status_code == 400

    def test_permanent_delete_needs_super_key(self, client, auth):
        order = _create(client, auth)

        resp = client.delete(f"/api/order/{order['id']}?permanent=1", headers=auth)
        assert resp.status_code == 403

        wrong = {**auth, "x-super-key": "guess"}
        resp = client.delete(f"/api/order/{order['id']}?permanent=1", headers=wrong)
        assert resp.status_code == 403

        resp = client.delete(f"/api/order/{order['id']}?permanent=1", headers={**auth, **SUPER})
        assert resp.json() == {"ok": True}
        assert client.get("/api/orders", headers=auth).json() == []


# ==================== 报表与超级管理员 ====================

class TestReportsAndSuper:

    def test_daily_report(self, client, auth):
        _create(client, auth, type="cash", amount=15000)
        body = client.get("/api/daily-report", headers=auth).json()
        assert body["ok"] is True
        assert body["count"] == 1
        assert body["totalSum"] == 15000

    def test_push_daily_report(self, client, auth, notifier):
        resp = client.post("/api/daily-report", headers=auth)
        assert resp.json()["count"] == 0
        assert notifier.sent

    @pytest.mark.parametrize("method, path", [
        ("get", "/api/trash"),
        ("post", "/api/clear"),
        ("post", "/api/daily-reset"),
        ("post", "/api/archive-day"),
        ("get", "/api/archive"),
    ])
    def test_super_routes_need_key(self, client, auth, method, path):
        resp = getattr(client, method)(path, headers=auth)
        assert resp.status_code == 403
        assert resp.json()["ok"] is False

    def test_super_key_in_query(self, client, auth):
        resp = client.get("/api/trash?superKey=root-key", headers=auth)
        assert resp.status_code == 200
        assert resp.json() == []

    def test_archive_day_empty_then_filled(self, client, auth):
        headers = {**auth, **SUPER}
        assert client.post("/api/archive-day", headers=headers).json()["ok"] is False

        _create(client, auth, type="cash", amount=15000)
        body = client.post("/api/archive-day", headers=headers).json()
        assert body == {"ok": True, "archived": 1, "totalSum": 15000}

        archives = client.get("/api/archive", headers=headers).json()["archive"]
        assert len(archives) == 1
        assert len(client.get("/api/trash", headers=headers).json()) == 1

    def test_daily_reset_and_clear(self, client, auth):
        headers = {**auth, **SUPER}
        _create(client, auth)
        _create(client, auth)

        assert client.post("/api/daily-reset", headers=headers).json() == {"ok": True, "updated": 2}

        body = client.post("/api/clear", headers=headers).json()
        assert body["totalCount"] == 2
        assert client.get("/api/orders", headers=auth).json() == []


# ==================== 路由兜底 ====================

def test_unknown_api_route_is_json(client):
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"ok": False, "error": "API route not found"}


def test_unknown_page_is_plain_text(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.text == "Not found"


def test_unexpected_error_returns_500(web, lifecycle, auth, monkeypatch):
    def broken():
        raise RuntimeError("db gone")

    monkeypatch.setattr(lifecycle, "list_orders", broken)
    with TestClient(web.create_app(), raise_server_exceptions=False) as c:
        resp = c.get("/api/orders", headers=auth)
    assert resp.status_code == 500
    assert resp.json() == {"ok": False, "error": "Server error"}
