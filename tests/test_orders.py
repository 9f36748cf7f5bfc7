"""Tests for checkout, order history and shipment tracking.

Covers:
- Order totals and per-line price snapshots
- Later price changes never alter placed orders
- Cart emptied on checkout; empty cart rejected
- Orders scoped to their owner
- Admin status transitions, tracking numbers and carrier events
"""

import re
from decimal import Decimal

from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.cart import CartItem
from storefront.models.order import Order
from storefront.models.product import Product
from storefront.services.order_service import generate_tracking_number


def place_order(client):
    client.post("/api/cart", json={"productId": 3, "quantity": 2})
    client.post("/api/cart", json={"productId": 2, "quantity": 1})
    return client.post("/api/orders", json={
        "shippingAddress": {"line1": "12 MG Road", "city": "Bengaluru", "pin": "560001"},
    })


class TestCheckout:
    def test_creates_order_with_snapshot(self, app, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = place_order(client)
        assert resp.status_code == 201
        order = resp.get_json()
        assert order["totalAmount"] == "217.50"
        assert order["status"] == "pending"
        assert order["shippingAddress"]["city"] == "Bengaluru"
        assert [(i["productId"], i["quantity"], i["price"]) for i in order["items"]] == [
            (3, 2, "99.00"),
            (2, 1, "19.50"),
        ]

        with app.app_context():
            assert CartItem.query.filter_by(user_id="u1").count() == 0

    def test_price_change_does_not_touch_order(self, app, client, seed_data, login):
        login(seed_data["buyer_email"])
        order_id = place_order(client).get_json()["id"]

        with app.app_context():
            db.session.get(Product, 3).price = Decimal("149.00")
            db.session.commit()

        order = client.get(f"/api/orders/{order_id}").get_json()
        assert order["items"][0]["price"] == "99.00"
        assert order["totalAmount"] == "217.50"

    def test_empty_cart_rejected(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/orders", json={})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Cart is empty."

    def test_invalid_shipping_address(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        client.post("/api/cart", json={"productId": 3})
        resp = client.post("/api/orders", json={"shippingAddress": "somewhere"})
        assert resp.status_code == 400


class TestOrderReads:
    def test_list_and_detail(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        order_id = place_order(client).get_json()["id"]

        orders = client.get("/api/orders").get_json()
        assert [o["id"] for o in orders] == [order_id]

        detail = client.get(f"/api/orders/{order_id}").get_json()
        assert detail["tracking"] == []

    def test_other_users_order_is_404(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        order_id = place_order(client).get_json()["id"]
        client.post("/api/auth/logout")

        login(seed_data["other_email"])
        assert client.get(f"/api/orders/{order_id}").status_code == 404
        assert client.get("/api/orders").get_json() == []


class TestShipmentUpdates:
    def _order_id(self, client, login, seed_data):
        login(seed_data["buyer_email"])
        order_id = place_order(client).get_json()["id"]
        client.post("/api/auth/logout")
        login(seed_data["admin_email"], "admin123")
        return order_id

    def test_shipped_stamps_time_and_tracking_number(self, app, client, seed_data, login):
        order_id = self._order_id(client, login, seed_data)

        resp = client.put(f"/api/admin/orders/{order_id}/status", json={
            "status": "shipped",
            "trackingData": {"carrier": "DHL"},
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "shipped"
        assert data["shippingCarrier"] == "dhl"
        assert data["shippedAt"] is not None
        assert data["trackingNumber"].startswith("CZ")

        with app.app_context():
            audit = AuditEvent.query.filter_by(action="order.status_changed").one()
            assert audit.metadata_["new_status"] == "shipped"
            assert audit.actor_user_id == seed_data["admin_id"]

    def test_delivered_stamps_time(self, client, seed_data, login):
        order_id = self._order_id(client, login, seed_data)
        data = client.put(
            f"/api/admin/orders/{order_id}/status", json={"status": "delivered"}
        ).get_json()
        assert data["deliveredAt"] is not None

    def test_invalid_status_and_carrier(self, client, seed_data, login):
        order_id = self._order_id(client, login, seed_data)
        assert client.put(
            f"/api/admin/orders/{order_id}/status", json={"status": "lost"}
        ).status_code == 400
        assert client.put(f"/api/admin/orders/{order_id}/status", json={
            "status": "shipped", "trackingData": {"carrier": "pigeon"},
        }).status_code == 400
        assert client.put(
            "/api/admin/orders/999/status", json={"status": "paid"}
        ).status_code == 404

    def test_malformed_tracking_data_is_400(self, app, client, seed_data, login):
        order_id = self._order_id(client, login, seed_data)
        url = f"/api/admin/orders/{order_id}/status"

        resp = client.put(url, json={"status": "shipped", "trackingData": "DHL"})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "trackingData must be an object."

        resp = client.put(url, json={"status": "shipped", "trackingData": {"carrier": 7}})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "carrier must be a string."

        resp = client.post(f"/api/admin/orders/{order_id}/tracking", json=["in_transit"])
        assert resp.status_code == 400

        with app.app_context():
            assert db.session.get(Order, order_id).status == "pending"

    def test_tracking_events(self, app, client, seed_data, login):
        order_id = self._order_id(client, login, seed_data)
        client.put(f"/api/admin/orders/{order_id}/status", json={
            "status": "shipped",
            "trackingData": {"carrier": "fedex", "trackingNumber": "FX123"},
        })

        first = client.post(f"/api/admin/orders/{order_id}/tracking", json={
            "status": "in_transit",
            "location": "Mumbai hub",
            "eventTime": "2026-10-01T08:00:00Z",
        })
        assert first.status_code == 201
        assert first.get_json()["trackingNumber"] == "FX123"
        client.post(f"/api/admin/orders/{order_id}/tracking", json={
            "status": "out_for_delivery",
            "location": "Bengaluru",
            "eventTime": "2026-10-02T08:00:00Z",
        })

        bad = client.post(f"/api/admin/orders/{order_id}/tracking", json={"status": "teleported"})
        assert bad.status_code == 400

        with app.app_context():
            order = db.session.get(Order, order_id)
            assert [e.status for e in order.tracking_events] == ["out_for_delivery", "in_transit"]

    def test_customer_cannot_update_status(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        order_id = place_order(client).get_json()["id"]
        resp = client.put(f"/api/admin/orders/{order_id}/status", json={"status": "delivered"})
        assert resp.status_code == 403


class TestTrackingNumbers:
    def test_format_and_uniqueness(self):
        numbers = {generate_tracking_number() for _ in range(50)}
        assert len(numbers) == 50
        for number in numbers:
            assert re.fullmatch(r"CZ[0-9A-Z]{14,}", number)
