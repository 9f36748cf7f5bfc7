"""Tests for library access rules and the payment read endpoints.

Covers:
- has_access requires BOTH a verified payment and a library row
- Library listing hides rows without a verified payment
- add_to_library precondition and no-upsert behaviour
- access_status transitions
- /api/access, /api/payment-status, /api/library, /api/payments
- /api/create-payment-session link building (grants nothing)
"""

from urllib.parse import parse_qs, urlsplit

import pytest

from storefront.extensions import db
from storefront.models.library import LibraryEntry
from storefront.models.payment import Payment
from storefront.services import library_service
from storefront.services.library_service import (
    LibraryEntryExistsError,
    NoCompletedPaymentError,
)


class TestHasAccess:
    """Access needs a verified payment AND a granted library row."""

    def test_neither_row(self, app, seed_data):
        with app.app_context():
            assert library_service.has_access("u1", 3) is False

    def test_payment_only(self, app, seed_data, make_payment):
        make_payment("u1", 3, "pay_only")
        with app.app_context():
            assert library_service.has_verified_payment("u1", 3) is True
            assert library_service.has_access("u1", 3) is False

    def test_library_only(self, app, seed_data, make_library_entry):
        make_library_entry("u1", 3)
        with app.app_context():
            assert library_service.has_library_entry("u1", 3) is True
            assert library_service.has_access("u1", 3) is False

    def test_both_rows(self, app, seed_data, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_both")
        make_library_entry("u1", 3)
        with app.app_context():
            assert library_service.has_access("u1", 3) is True
            # Pair-scoped: other user / other product unaffected
            assert library_service.has_access("u2", 3) is False
            assert library_service.has_access("u1", 1) is False

    def test_completed_but_not_webhook_verified(self, app, seed_data, make_payment,
                                                make_library_entry):
        make_payment("u1", 3, "pay_manual", method="manual")
        make_library_entry("u1", 3)
        with app.app_context():
            assert library_service.has_access("u1", 3) is False

    def test_pending_payment(self, app, seed_data, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_pending", status="pending")
        make_library_entry("u1", 3)
        with app.app_context():
            assert library_service.has_access("u1", 3) is False

    def test_access_not_granted_flag(self, app, seed_data, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_flag")
        make_library_entry("u1", 3, access_granted=False)
        with app.app_context():
            assert library_service.has_access("u1", 3) is False


class TestLibraryListing:
    """get_user_library only returns verified, granted rows."""

    def test_excludes_unverified_rows(self, app, seed_data, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_verified")
        make_library_entry("u1", 3)
        # Library row with no payment at all
        make_library_entry("u1", 1)
        # Library row backed by a pending payment
        make_payment("u1", 2, "pay_pending", status="pending", amount="19.50")
        make_library_entry("u1", 2)

        with app.app_context():
            entries = library_service.get_user_library("u1")
            assert [e.product_id for e in entries] == [3]

    def test_newest_purchase_first(self, app, seed_data, make_payment):
        from datetime import datetime, timedelta, timezone

        make_payment("u1", 3, "pay_a")
        make_payment("u1", 1, "pay_b", amount="149.00")
        now = datetime.now(timezone.utc)
        with app.app_context():
            library_service.add_to_library("u1", 3, purchase_date=now - timedelta(days=2))
            library_service.add_to_library("u1", 1, purchase_date=now)
            db.session.commit()

            entries = library_service.get_user_library("u1")
            assert [e.product_id for e in entries] == [1, 3]

    def test_library_endpoint(self, client, seed_data, login, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_verified")
        make_library_entry("u1", 3)
        make_library_entry("u1", 1)  # inert

        login(seed_data["buyer_email"])
        resp = client.get("/api/library")
        assert resp.status_code == 200
        assert "no-store" in resp.headers["Cache-Control"]

        items = resp.get_json()
        assert len(items) == 1
        assert items[0]["productId"] == 3
        assert items[0]["product"]["accessLink"] == "https://content.example.com/templates"

    def test_library_requires_login(self, client, seed_data):
        resp = client.get("/api/library")
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Authentication required"


class TestAddToLibrary:
    """add_to_library never writes without a completed payment, never upserts."""

    def test_refuses_without_completed_payment(self, app, seed_data):
        with app.app_context():
            with pytest.raises(NoCompletedPaymentError):
                library_service.add_to_library("u1", 3)
            assert LibraryEntry.query.count() == 0

    def test_refuses_with_pending_payment(self, app, seed_data, make_payment):
        make_payment("u1", 3, "pay_pending", status="pending")
        with app.app_context():
            with pytest.raises(NoCompletedPaymentError):
                library_service.add_to_library("u1", 3)

    def test_refuses_existing_row(self, app, seed_data, make_payment, make_library_entry):
        make_payment("u1", 3, "pay_x")
        make_library_entry("u1", 3)
        with app.app_context():
            with pytest.raises(LibraryEntryExistsError):
                library_service.add_to_library("u1", 3)
            assert LibraryEntry.query.count() == 1

    def test_adds_row_with_completed_payment(self, app, seed_data, make_payment):
        make_payment("u1", 3, "pay_ok")
        with app.app_context():
            entry = library_service.add_to_library("u1", 3)
            db.session.commit()
            assert entry.access_granted is True
            assert library_service.has_access("u1", 3) is True


class TestAccessStatus:
    def test_transitions(self, app, seed_data, make_payment, make_library_entry):
        with app.app_context():
            assert library_service.access_status("u1", 3) == "NO_PAYMENT"

        payment_pk = make_payment("u1", 3, "pay_s", status="pending", method=None)
        with app.app_context():
            assert library_service.access_status("u1", 3) == "PENDING"

        with app.app_context():
            payment = db.session.get(Payment, payment_pk)
            payment.status = "completed"
            payment.payment_method = Payment.METHOD_WEBHOOK_VERIFIED
            db.session.commit()
            # Verified payment without library row is still pending
            assert library_service.access_status("u1", 3) == "PENDING"

        make_library_entry("u1", 3)
        with app.app_context():
            assert library_service.access_status("u1", 3) == "VERIFIED"

    def test_failed_and_unverified_rows_are_no_payment(self, app, seed_data, make_payment,
                                                       make_library_entry):
        make_payment("u1", 3, "pay_declined", status="failed", method=None)
        with app.app_context():
            assert library_service.access_status("u1", 3) == "NO_PAYMENT"

        # Completed by some other method, even with a library row
        make_payment("u1", 1, "pay_manual", method="manual")
        make_library_entry("u1", 1)
        with app.app_context():
            assert library_service.access_status("u1", 1) == "NO_PAYMENT"


class TestAccessEndpoints:
    def test_access_invalid_id(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        assert client.get("/api/access/abc").status_code == 400
        assert client.get("/api/access/0").status_code == 400

    def test_access_false_without_purchase(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.get("/api/access/3")
        assert resp.get_json() == {"hasAccess": False}

    def test_access_requires_login(self, client, seed_data):
        resp = client.get("/api/access/3")
        assert resp.status_code == 401
        assert "loginUrl" in resp.get_json()

    def test_payment_status_verified(self, client, seed_data, login, make_payment,
                                     make_library_entry):
        make_payment("u1", 3, "pay_v")
        make_library_entry("u1", 3)

        login(seed_data["buyer_email"])
        data = client.get("/api/payment-status/3").get_json()
        assert data == {
            "productId": 3,
            "hasVerifiedPayment": True,
            "hasAccess": True,
            "canAccess": True,
            "verifiedPayments": 1,
            "accessStatus": "VERIFIED",
        }

    def test_payment_status_no_payment(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        data = client.get("/api/payment-status/3").get_json()
        assert data["hasVerifiedPayment"] is False
        assert data["verifiedPayments"] == 0
        assert data["accessStatus"] == "NO_PAYMENT"

    def test_payments_list_scoped_to_user(self, client, seed_data, login, make_payment):
        make_payment("u1", 3, "pay_mine")
        make_payment("u2", 3, "pay_theirs")

        login(seed_data["buyer_email"])
        payments = client.get("/api/payments").get_json()
        assert [p["paymentId"] for p in payments] == ["pay_mine"]
        assert payments[0]["amount"] == "99.00"


class TestCreatePaymentSession:
    """The payment link carries user/product notes and grants nothing."""

    def test_builds_prefilled_link(self, app, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/create-payment-session", json={
            "productId": 3,
            "customerDetails": {
                "name": "Priya B",
                "email": "priya+test@example.com",
                "phone": "+91 98000",
            },
        })
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["success"] is True
        assert data["productName"] == "Premium Web Templates"
        assert data["amount"] == "99.00"

        url = urlsplit(data["paymentUrl"])
        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://rzp.io/l/sample1"
        assert "prefill[email]=priya%2Btest%40example.com" in url.query
        params = parse_qs(url.query)
        assert params["prefill[name]"] == ["Priya B"]
        assert params["prefill[contact]"] == ["+91 98000"]
        assert params["notes[user_id]"] == ["u1"]
        assert params["notes[product_id]"] == ["3"]

        with app.app_context():
            assert Payment.query.count() == 0
            assert LibraryEntry.query.count() == 0

    def test_defaults_to_profile_details(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/create-payment-session", json={"productId": "3"})
        params = parse_qs(urlsplit(resp.get_json()["paymentUrl"]).query)
        assert params["prefill[email]"] == ["buyer@example.com"]
        assert params["prefill[name]"] == ["Priya Buyer"]

    def test_unknown_product_404(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/create-payment-session", json={"productId": 999})
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Product not found"

    def test_product_without_link_400(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/create-payment-session", json={"productId": 2})
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "No payment link configured for this product"

    def test_requires_login(self, client, seed_data):
        resp = client.post("/api/create-payment-session", json={"productId": 3})
        assert resp.status_code == 401
