"""Shared test fixtures for the storefront test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: admin, two customers, categories and three products
- login: helper that logs a client in through /api/auth/login
- captured_event: Razorpay webhook body builder
- make_payment / make_library_entry: direct row inserts
"""

import json
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.extensions import db as _db
from storefront.models.library import LibraryEntry
from storefront.models.payment import Payment
from storefront.models.product import Category, Product
from storefront.models.user import User

CUSTOMER_PASSWORD = "password123"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def seed_data(app, db_session):
    """Seed users, categories and products.

    Product 3 is the 99.00 product with a Razorpay link used by the
    webhook tests; product 2 has no payment link.

    Returns plain IDs so tests can use them across app contexts.
    """
    with app.app_context():
        # --- Users ---
        admin = User(
            email="admin@storefront.local",
            password_hash=generate_password_hash("admin123"),
            name="Admin User",
            is_admin=True,
        )
        buyer = User(
            id="u1",
            email="buyer@example.com",
            password_hash=generate_password_hash(CUSTOMER_PASSWORD),
            name="Priya Buyer",
            phone="+919800000001",
        )
        other = User(
            id="u2",
            email="other@example.com",
            password_hash=generate_password_hash(CUSTOMER_PASSWORD),
            name="Other Customer",
        )
        _db.session.add_all([admin, buyer, other])

        # --- Categories ---
        _db.session.add_all([
            Category(name="templates", description="Website templates", icon="layout"),
            Category(name="course", description="Video courses", icon="book-open"),
            Category(name="retired", description="Old stuff", is_active=False),
        ])

        # --- Products ---
        _db.session.add_all([
            Product(
                id=1,
                name="Digital Marketing Course",
                brand="EduTech",
                description="Complete digital marketing guide",
                price=Decimal("149.00"),
                category="course",
                image_url="https://img.example.com/course.png",
                razorpay_link="https://rzp.io/l/sample2",
                access_link="https://content.example.com/course",
            ),
            Product(
                id=2,
                name="Icon Pack",
                brand="PixelWorks",
                description="500 line icons",
                price=Decimal("19.50"),
                category="templates",
                image_url="https://img.example.com/icons.png",
            ),
            Product(
                id=3,
                name="Premium Web Templates",
                brand="DesignPro",
                description="Professional website templates",
                price=Decimal("99.00"),
                category="templates",
                image_url="https://img.example.com/templates.png",
                razorpay_link="https://rzp.io/l/sample1",
                access_link="https://content.example.com/templates",
            ),
        ])
        _db.session.commit()

        return {
            "admin_id": admin.id,
            "admin_email": admin.email,
            "buyer_id": "u1",
            "buyer_email": buyer.email,
            "other_id": "u2",
            "other_email": other.email,
            "product_id": 3,
            "course_id": 1,
            "unlinked_product_id": 2,
        }


@pytest.fixture
def login(client):
    """Return a helper that logs the shared client in as `email`."""

    def _login(email, password=CUSTOMER_PASSWORD):
        return client.post(
            "/api/auth/login",
            json={"email": email, "password": password},
        )

    return _login


@pytest.fixture
def login_admin(login, seed_data):
    return login(seed_data["admin_email"], "admin123")


@pytest.fixture
def captured_event():
    """Build a Razorpay payment webhook body."""

    def _event(payment_id="pay_abc", user_id="u1", product_id="3",
               amount=9900, status="captured", event="payment.captured"):
        notes = {}
        if user_id is not None:
            notes["user_id"] = user_id
        if product_id is not None:
            notes["product_id"] = product_id
        return {
            "event": event,
            "payload": {
                "payment": {
                    "entity": {
                        "id": payment_id,
                        "amount": amount,
                        "status": status,
                        "notes": notes,
                    }
                }
            },
        }

    return _event


@pytest.fixture
def make_payment(app):
    """Insert a Payment row directly (bypassing the webhook)."""

    def _make(user_id, product_id, payment_id, status=Payment.STATUS_COMPLETED,
              method=Payment.METHOD_WEBHOOK_VERIFIED, amount="99.00"):
        with app.app_context():
            payment = Payment(
                user_id=user_id,
                product_id=product_id,
                payment_id=payment_id,
                amount=Decimal(amount),
                status=status,
                payment_method=method,
                issue_notes=json.dumps({"seeded": True}),
            )
            _db.session.add(payment)
            _db.session.commit()
            return payment.id

    return _make


@pytest.fixture
def make_library_entry(app):
    """Insert a LibraryEntry row directly (bypassing add_to_library)."""

    def _make(user_id, product_id, access_granted=True):
        with app.app_context():
            entry = LibraryEntry(
                user_id=user_id, product_id=product_id, access_granted=access_granted
            )
            _db.session.add(entry)
            _db.session.commit()
            return entry.id

    return _make
