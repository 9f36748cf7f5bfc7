import os
import logging
import json
from decimal import Decimal

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash

from storefront.config import config_by_name
from storefront.extensions import db, migrate, login_manager, csrf, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from storefront import models  # noqa: F401

    # --- Register blueprints ---
    from storefront.blueprints.auth import auth_bp
    from storefront.blueprints.catalog import catalog_bp
    from storefront.blueprints.cart import cart_bp
    from storefront.blueprints.orders import orders_bp
    from storefront.blueprints.payments import payments_bp
    from storefront.blueprints.payment_tools import payment_tools_bp
    from storefront.blueprints.admin import admin_bp
    from storefront.blueprints.webhooks import webhooks_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(payment_tools_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(webhooks_bp)

    # Exempt webhooks from CSRF; raw body needed for Razorpay signature verification
    csrf.exempt(webhooks_bp)

    # --- Error handlers ---
    register_error_handlers(app)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=(self)"
        )
        # JSON API: nothing to render, nothing to frame
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_error_handlers(app):
    """JSON bodies for every HTTP error the API can produce."""

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"message": e.description or e.name}), e.code

    @app.errorhandler(403)
    def forbidden(e):
        return jsonify({"message": "Admin access required"}), 403

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"message": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"message": "Method not allowed"}), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify({"message": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify({"message": "Internal server error"}), 500


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@storefront.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create (or promote) an admin user.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from storefront.models.user import User

        email = email.lower().strip()
        existing = User.query.filter_by(email=email).first()
        if existing:
            existing.is_admin = True
            db.session.commit()
            click.echo(f"Admin user already exists: {email} (is_admin ensured)")
            return

        admin = User(
            email=email,
            password_hash=generate_password_hash(password),
            name="Admin",
            is_admin=True,
        )
        db.session.add(admin)
        db.session.commit()
        click.echo(f"Created admin user: {email}")

    @app.cli.command("seed-catalog")
    def seed_catalog():
        """Create demo categories and products (skips names that exist)."""
        from storefront.models.product import Category, Product

        categories = [
            ("templates", "Website and design templates", "layout"),
            ("course", "Video courses and guides", "book-open"),
        ]
        products = [
            {
                "name": "Premium Web Templates",
                "brand": "DesignPro",
                "description": "Professional website templates",
                "price": Decimal("99.00"),
                "category": "templates",
                "image_url": "https://images.unsplash.com/photo-1460925895917-afdab827c52f?w=300",
                "razorpay_link": "https://rzp.io/l/sample1",
            },
            {
                "name": "Digital Marketing Course",
                "brand": "EduTech",
                "description": "Complete digital marketing guide",
                "price": Decimal("149.00"),
                "category": "course",
                "image_url": "https://images.unsplash.com/photo-1611224923853-80b023f02d71?w=300",
                "razorpay_link": "https://rzp.io/l/sample2",
            },
        ]

        created = 0
        for name, description, icon in categories:
            if not Category.query.filter_by(name=name).first():
                db.session.add(Category(name=name, description=description, icon=icon))
                created += 1
        for fields in products:
            if not Product.query.filter_by(name=fields["name"]).first():
                db.session.add(Product(**fields))
                created += 1
        db.session.commit()
        click.echo(f"Catalog seeded: {created} new rows")

    @app.cli.command("diagnose-payments")
    @click.argument("user_id")
    def diagnose_payments(user_id):
        """Print the payment/library discrepancy report for USER_ID."""
        from storefront.services.reconciliation_service import diagnose

        report = diagnose(user_id)
        click.echo(json.dumps(report, indent=2, default=str))

    @app.cli.command("force-sync")
    @click.argument("user_id")
    def force_sync(user_id):
        """Grant missing library rows for USER_ID's completed payments."""
        from storefront.services.reconciliation_service import force_sync as _force_sync

        result = _force_sync(user_id)
        for item in result["syncResults"]:
            line = f"  {item['paymentId']}  product={item['productId']}  {item['status']}"
            if item.get("error"):
                line += f"  ({item['error']})"
            click.echo(line)
        click.echo(f"New access granted: {result['newAccessGranted']}")
