"""Security tests.

Tests:
- Security headers are present on responses
- JSON error bodies for 401/403/404/405
- CSRF enforced on session routes, exempt on the webhook
- Rate limiting configuration
"""

import json

import pytest


class TestSecurityHeaders:
    """Verify security headers are present on responses."""

    def test_x_content_type_options(self, client):
        response = client.get("/api/products")
        assert response.headers.get("X-Content-Type-Options") == "nosniff"

    def test_x_frame_options(self, client):
        response = client.get("/api/products")
        assert response.headers.get("X-Frame-Options") == "DENY"

    def test_referrer_policy(self, client):
        response = client.get("/api/products")
        assert response.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"

    def test_permissions_policy(self, client):
        pp = client.get("/api/products").headers.get("Permissions-Policy")
        assert "camera=()" in pp
        assert "payment=(self)" in pp

    def test_csp_header(self, client):
        csp = client.get("/api/products").headers.get("Content-Security-Policy")
        assert "default-src 'none'" in csp
        assert "frame-ancestors 'none'" in csp

    def test_no_hsts_in_debug(self, client):
        """HSTS is only sent outside debug mode."""
        assert "Strict-Transport-Security" not in client.get("/api/products").headers


class TestJsonErrors:
    def test_404_is_json(self, client):
        resp = client.get("/api/does-not-exist")
        assert resp.status_code == 404
        assert resp.get_json() == {"message": "Not found"}

    def test_405_is_json(self, client):
        resp = client.delete("/api/products")
        assert resp.status_code == 405
        assert resp.get_json() == {"message": "Method not allowed"}

    def test_401_is_json(self, client):
        resp = client.get("/api/payments")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Authentication required"


@pytest.fixture
def csrf_enabled(app, monkeypatch):
    monkeypatch.setitem(app.config, "WTF_CSRF_ENABLED", True)


class TestCsrf:
    def test_session_route_requires_token(self, client, csrf_enabled):
        resp = client.post("/api/auth/login", json={"email": "a@b.c", "password": "x"})
        assert resp.status_code == 400
        assert "CSRF" in resp.get_json()["message"]

    def test_token_from_endpoint_is_accepted(self, client, csrf_enabled):
        token = client.get("/api/auth/csrf-token").get_json()["csrfToken"]
        resp = client.post(
            "/api/auth/login",
            json={"email": "a@b.c", "password": "wrong-password"},
            headers={"X-CSRFToken": token},
        )
        assert resp.status_code == 401

    def test_webhook_is_exempt(self, client, csrf_enabled):
        resp = client.post(
            "/api/webhook/razorpay",
            data=json.dumps({"event": "order.paid"}),
            content_type="application/json",
        )
        assert resp.status_code == 200
        assert resp.get_json()["reason"] == "event_not_handled"


class TestRateLimiting:
    def test_rate_limiting_disabled_in_tests(self, app):
        assert app.config.get("RATELIMIT_ENABLED") is False

