"""Payments blueprint: access checks, library and payment history.

Every route here is read-only with respect to entitlements. The only
thing that grants library access is a verified Razorpay webhook (see
webhooks.py); create-payment-session just builds a link.

Routes:
    GET  /api/access/<productId>
    GET  /api/payment-status/<productId>
    GET  /api/library
    GET  /api/payments
    POST /api/create-payment-session
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from storefront.services import (
    catalog_service,
    library_service,
    payment_service,
    razorpay_service,
)

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api")


def _parse_product_id(value):
    """Positive integer product id, or None."""
    try:
        product_id = int(value)
    except (TypeError, ValueError):
        return None
    return product_id if product_id > 0 else None


# ──────────────────────────────────────────────
# Access
# ──────────────────────────────────────────────

@payments_bp.route("/access/<product_id>", methods=["GET"])
@login_required
def check_access(product_id):
    product_id = _parse_product_id(product_id)
    if product_id is None:
        return jsonify({"message": "Invalid product ID"}), 400

    return jsonify({"hasAccess": library_service.has_access(current_user.id, product_id)})


@payments_bp.route("/payment-status/<product_id>", methods=["GET"])
@login_required
def payment_status(product_id):
    product_id = _parse_product_id(product_id)
    if product_id is None:
        return jsonify({"message": "Invalid product ID"}), 400

    verified_count = payment_service.count_verified_payments(current_user.id, product_id)
    has_access = library_service.has_access(current_user.id, product_id)

    return jsonify({
        "productId": product_id,
        "hasVerifiedPayment": verified_count > 0,
        "hasAccess": has_access,
        "canAccess": has_access,
        "verifiedPayments": verified_count,
        "accessStatus": library_service.access_status(current_user.id, product_id),
    })


@payments_bp.route("/library", methods=["GET"])
@login_required
def get_library():
    """Verified library items with their product (access link included)."""
    entries = library_service.get_user_library(current_user.id)
    response = jsonify([e.to_dict(include_product=True) for e in entries])
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
    return response


@payments_bp.route("/payments", methods=["GET"])
@login_required
def list_payments():
    payments = payment_service.get_user_payments(current_user.id)
    return jsonify([p.to_dict() for p in payments])


# ──────────────────────────────────────────────
# POST /api/create-payment-session
# ──────────────────────────────────────────────

@payments_bp.route("/create-payment-session", methods=["POST"])
@login_required
def create_payment_session():
    """Build a prefilled Razorpay link. Grants nothing."""
    data = request.get_json(silent=True) or {}
    product_id = _parse_product_id(data.get("productId"))
    if product_id is None:
        return jsonify({"message": "Invalid product ID"}), 400

    product = catalog_service.get_product(product_id)
    if product is None:
        return jsonify({"message": "Product not found"}), 404

    customer = data.get("customerDetails") or {}
    if not isinstance(customer, dict):
        return jsonify({"message": "customerDetails must be an object."}), 400
    customer = {
        "name": customer.get("name") or current_user.name,
        "email": customer.get("email") or current_user.email,
        "phone": customer.get("phone") or current_user.phone,
    }

    try:
        payment_url = razorpay_service.build_payment_url(product, current_user.id, customer)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    logger.info(
        f"Payment URL generated for user {current_user.id}, product {product.id}; "
        f"access waits for webhook verification"
    )

    return jsonify({
        "success": True,
        "paymentUrl": payment_url,
        "productName": product.name,
        "amount": f"{product.price:.2f}",
        "message": (
            "Complete payment to get instant access. "
            "Access granted only after payment verification."
        ),
    })
