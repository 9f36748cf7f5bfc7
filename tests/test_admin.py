"""Tests for the admin catalog endpoints and admin guards."""

from decimal import Decimal

from storefront.extensions import db
from storefront.models.order import Order
from storefront.models.product import Category, Product


NEW_PRODUCT = {
    "name": "<b>Notion Kit</b>",
    "brand": "Workspace Co",
    "price": "49.5",
    "category": "templates",
    "imageUrl": "https://img.example.com/notion.png",
    "accessLink": "https://content.example.com/notion",
    "razorpayLink": "https://rzp.io/l/notion",
}


class TestAdminGuards:
    def test_check_endpoint(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        assert client.get("/api/admin/check").get_json() == {"isAdmin": False, "userId": "u1"}

    def test_check_endpoint_admin(self, client, seed_data, login_admin):
        assert client.get("/api/admin/check").get_json()["isAdmin"] is True

    def test_customer_gets_403(self, client, seed_data, login):
        login(seed_data["buyer_email"])
        resp = client.post("/api/admin/products", json=NEW_PRODUCT)
        assert resp.status_code == 403
        assert resp.get_json() == {"message": "Admin access required"}

    def test_anonymous_gets_401(self, client, seed_data):
        assert client.post("/api/admin/categories", json={"name": "x"}).status_code == 401


class TestAdminProducts:
    def test_create_product(self, app, client, seed_data, login_admin):
        resp = client.post("/api/admin/products", json=NEW_PRODUCT)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["name"] == "Notion Kit"
        assert data["price"] == "49.50"
        assert data["accessLink"] == "https://content.example.com/notion"

        with app.app_context():
            assert Product.query.count() == 4

    def test_create_product_missing_fields(self, client, seed_data, login_admin):
        resp = client.post("/api/admin/products", json={"name": "Half"})
        assert resp.status_code == 400
        assert "brand" in resp.get_json()["message"]

    def test_create_product_bad_price(self, client, seed_data, login_admin):
        payload = dict(NEW_PRODUCT, price="-1")
        assert client.post("/api/admin/products", json=payload).status_code == 400
        payload = dict(NEW_PRODUCT, price="cheap")
        assert client.post("/api/admin/products", json=payload).status_code == 400

    def test_update_product(self, app, client, seed_data, login_admin):
        resp = client.put("/api/admin/products/3", json={"price": "89.00", "inStock": False})
        assert resp.status_code == 200
        assert resp.get_json()["price"] == "89.00"
        assert resp.get_json()["inStock"] is False

        assert client.put("/api/admin/products/999", json={"price": "1"}).status_code == 404

    def test_delete_product(self, app, client, seed_data, login_admin):
        assert client.delete("/api/admin/products/2").status_code == 200
        assert client.delete("/api/admin/products/2").status_code == 404
        with app.app_context():
            assert db.session.get(Product, 2) is None

    def test_delete_product_on_an_order_is_409(self, app, client, seed_data, login):
        login(seed_data["buyer_email"])
        client.post("/api/cart", json={"productId": 2})
        order_id = client.post("/api/orders", json={}).get_json()["id"]
        client.post("/api/auth/logout")

        login(seed_data["admin_email"], "admin123")
        resp = client.delete("/api/admin/products/2")
        assert resp.status_code == 409

        with app.app_context():
            assert db.session.get(Product, 2) is not None
            assert db.session.get(Order, order_id).items[0].price == Decimal("19.50")

    def test_delete_paid_product_is_409(self, app, client, seed_data, login_admin,
                                        make_payment):
        make_payment("u1", 3, "pay_keep")
        assert client.delete("/api/admin/products/3").status_code == 409
        with app.app_context():
            assert db.session.get(Product, 3) is not None


class TestAdminCategories:
    def test_create_category(self, client, seed_data, login_admin):
        resp = client.post("/api/admin/categories", json={"name": "ebooks", "icon": "book"})
        assert resp.status_code == 201
        assert resp.get_json()["name"] == "ebooks"

        dup = client.post("/api/admin/categories", json={"name": "ebooks"})
        assert dup.status_code == 400

    def test_update_category(self, client, seed_data, login_admin):
        category_id = client.post(
            "/api/admin/categories", json={"name": "ebooks"}
        ).get_json()["id"]
        resp = client.put(f"/api/admin/categories/{category_id}", json={"description": "PDFs"})
        assert resp.status_code == 200
        assert resp.get_json()["description"] == "PDFs"

        clash = client.put(f"/api/admin/categories/{category_id}", json={"name": "course"})
        assert clash.status_code == 400

    def test_delete_category_is_soft(self, app, client, seed_data, login_admin):
        with app.app_context():
            category_id = Category.query.filter_by(name="course").one().id

        assert client.delete(f"/api/admin/categories/{category_id}").status_code == 200
        names = [c["name"] for c in client.get("/api/categories").get_json()]
        assert "course" not in names

        with app.app_context():
            assert db.session.get(Category, category_id).is_active is False
