"""Webhooks blueprint: /api/webhook/razorpay

Receives Razorpay webhook events. CSRF-exempt.
Raw body is required for signature verification.
"""

import logging
from datetime import datetime, timezone

import razorpay
from flask import Blueprint, jsonify, request

from storefront.extensions import db, limiter
from storefront.services.razorpay_service import (
    handle_webhook_event,
    verify_webhook_signature,
    webhook_secret,
)

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhook")


@webhooks_bp.route("/razorpay", methods=["POST"])
@limiter.limit("120 per minute")
def razorpay_webhook():
    """Receive and process Razorpay webhook events.

    1. Get raw body (required for signature verification)
    2. Verify X-Razorpay-Signature when RAZORPAY_WEBHOOK_SECRET is set
    3. Pass to handle_webhook_event (idempotent via unique payment_id)
    4. Return 200 for every handled outcome, including duplicates

    CSRF is exempted for this blueprint in create_app().
    """
    payload = request.get_data(as_text=True)

    # --- Verify signature ---
    if webhook_secret():
        sig_header = request.headers.get("X-Razorpay-Signature")
        if not sig_header:
            logger.warning("Webhook received without X-Razorpay-Signature header")
            return jsonify({"error": "Missing signature"}), 400
        try:
            verify_webhook_signature(payload, sig_header)
        except razorpay.errors.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            return jsonify({"error": "Invalid signature"}), 400

    event = request.get_json(silent=True)
    if not isinstance(event, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    logger.info(f"Webhook received: {event.get('event')}")

    # --- Process event (idempotent) ---
    try:
        result = handle_webhook_event(event)
    except ValueError as e:
        db.session.rollback()
        logger.warning(f"Webhook rejected: {e}")
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        db.session.rollback()
        logger.error(f"Webhook processing failed: {e}", exc_info=True)
        return jsonify({"error": "Webhook processing failed"}), 500

    return jsonify(result), 200


@webhooks_bp.route("/razorpay", methods=["GET"])
def razorpay_webhook_status():
    """Liveness check for the webhook URL."""
    return jsonify({
        "message": "Razorpay webhook endpoint is active",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "methods": ["POST"],
    })
