"""Razorpay service: provider API calls and webhook handling.

Responsible for:
- Building prefilled payment-link URLs (grants nothing by itself)
- Verifying webhook signatures when RAZORPAY_WEBHOOK_SECRET is set
- Dispatching webhook events to event-specific handlers
- Fetching payments from the Razorpay API for operator tooling

Idempotency is the unique payment_id on the payments table: a replayed
payment.captured for a completed id is answered with reason "duplicate".
"""

import logging
from urllib.parse import quote, urlencode

import razorpay
from flask import current_app
from sqlalchemy.exc import IntegrityError

from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services import payment_service
from storefront.services.payment_service import DuplicatePaymentError

logger = logging.getLogger(__name__)


def get_client():
    """Authenticated Razorpay client built from app config."""
    return razorpay.Client(
        auth=(
            current_app.config["RAZORPAY_KEY_ID"],
            current_app.config["RAZORPAY_KEY_SECRET"],
        )
    )


# ──────────────────────────────────────────────
# Payment links
# ──────────────────────────────────────────────

def build_payment_url(product, user_id, customer_details):
    """Append prefill fields and tracking notes to the product's payment link.

    The notes come back to us on the webhook as payment.notes, which is
    how a captured payment is tied to a (user, product) pair.

    Raises:
        ValueError: If the product has no payment link configured.
    """
    if not product.razorpay_link:
        raise ValueError("No payment link configured for this product")

    customer_details = customer_details or {}
    params = [
        ("prefill[name]", customer_details.get("name") or ""),
        ("prefill[email]", customer_details.get("email") or ""),
        ("prefill[contact]", customer_details.get("phone") or ""),
        ("notes[user_id]", user_id),
        ("notes[product_id]", str(product.id)),
    ]
    separator = "&" if "?" in product.razorpay_link else "?"
    query = urlencode(params, safe="[]", quote_via=quote)
    return f"{product.razorpay_link}{separator}{query}"


# ──────────────────────────────────────────────
# Provider API
# ──────────────────────────────────────────────

def fetch_payment(payment_id):
    """Fetch a single payment entity from Razorpay.

    Raises razorpay.errors.BadRequestError for unknown ids.
    """
    return get_client().payment.fetch(payment_id)


def list_payments(from_ts=None, to_ts=None, count=100):
    """Fetch recent payments from Razorpay (one page, newest first)."""
    options = {"count": count}
    if from_ts:
        options["from"] = int(from_ts)
    if to_ts:
        options["to"] = int(to_ts)
    response = get_client().payment.all(options)
    return response.get("items", [])


# ──────────────────────────────────────────────
# Webhook Handling
# ──────────────────────────────────────────────

def webhook_secret():
    return current_app.config.get("RAZORPAY_WEBHOOK_SECRET")


def verify_webhook_signature(payload, signature):
    """Verify the X-Razorpay-Signature HMAC over the raw body.

    Raises razorpay.errors.SignatureVerificationError on mismatch.
    """
    client = get_client()
    client.utility.verify_webhook_signature(payload, signature, webhook_secret())


def handle_webhook_event(event):
    """Process a Razorpay webhook body.

    Returns the JSON response dict (always HTTP 200).

    Raises:
        ValueError: Payload is missing user/product notes or names an
            unknown product or user (HTTP 400).
    """
    event_type = (event or {}).get("event")
    entity = (
        ((event or {}).get("payload") or {}).get("payment") or {}
    ).get("entity")

    handlers = {
        "payment.captured": _handle_payment_captured,
        "payment.authorized": _handle_payment_authorized,
        "payment.failed": _handle_payment_failed,
    }

    handler = handlers.get(event_type)
    if handler is None or not entity:
        logger.info(f"Unhandled webhook event '{event_type}', ignoring")
        return {"processed": False, "reason": "event_not_handled"}

    return handler(entity)


def _resolve_notes(entity):
    """Pull (user, product) out of payment.notes.

    Raises:
        ValueError: Missing ids, or ids that don't resolve to rows.
    """
    notes = entity.get("notes") or {}
    if isinstance(notes, list):  # Razorpay sends [] when no notes were set
        notes = {}

    user_id = notes.get("user_id")
    raw_product_id = notes.get("product_id")
    if not user_id or not raw_product_id:
        raise ValueError("Missing required webhook data")

    try:
        product_id = int(raw_product_id)
    except (TypeError, ValueError):
        raise ValueError("Missing required webhook data")

    product = db.session.get(Product, product_id)
    if product is None:
        raise ValueError("Product not found")

    if db.session.get(User, str(user_id)) is None:
        raise ValueError("User not found")

    return str(user_id), product


def _handle_payment_captured(entity):
    """Handle payment.captured.

    Records a verified payment and grants library access in one commit.
    """
    payment_id = entity.get("id")
    status = entity.get("status")

    if status != "captured":
        logger.info(f"Webhook payment {payment_id} status={status}, not captured")
        return {"processed": False, "reason": "not_captured"}

    if not payment_id or entity.get("amount") is None:
        raise ValueError("Missing required webhook data")

    user_id, product = _resolve_notes(entity)

    try:
        payment, entry = payment_service.record_verified_payment(
            user_id=user_id,
            product=product,
            payment_id=payment_id,
            amount_minor=entity.get("amount"),
            source="webhook",
        )
        db.session.commit()
    except DuplicatePaymentError:
        db.session.rollback()
        logger.info(f"Duplicate webhook for payment {payment_id}, ignoring")
        return {"processed": False, "reason": "duplicate"}
    except IntegrityError:
        db.session.rollback()
        if payment_service.is_completed(payment_id):
            # Concurrent delivery of the same payment id won the insert
            logger.warning(f"Payment {payment_id} inserted concurrently, treating as duplicate")
            return {"processed": False, "reason": "duplicate"}
        # Library row raced in; a 500 makes Razorpay redeliver
        raise

    if entry is not None:
        logger.info(f"Webhook verified payment {payment_id}; library access granted to {user_id}")
    else:
        logger.info(f"Webhook verified payment {payment_id}; {user_id} already had a library entry")

    return {
        "processed": True,
        "message": "Payment verified and access granted",
        "paymentId": payment_id,
    }


def _handle_payment_authorized(entity):
    """Handle payment.authorized: track it as pending, grant nothing."""
    payment_id = entity.get("id")
    if not payment_id or entity.get("amount") is None:
        raise ValueError("Missing required webhook data")

    user_id, product = _resolve_notes(entity)

    try:
        payment = payment_service.create_pending_payment(
            user_id, product, payment_id, entity.get("amount")
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        payment = None

    if payment is None:
        return {"processed": False, "reason": "duplicate"}
    return {"processed": False, "reason": "pending_recorded"}


def _handle_payment_failed(entity):
    """Handle payment.failed: mark the attempt failed, grant nothing.

    A completed payment is never downgraded.
    """
    payment_id = entity.get("id")
    if not payment_id or entity.get("amount") is None:
        raise ValueError("Missing required webhook data")

    user_id, product = _resolve_notes(entity)

    try:
        payment = payment_service.record_failed_payment(
            user_id, product, payment_id, entity.get("amount"),
            reason=entity.get("error_description"),
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        payment = None

    if payment is None:
        return {"processed": False, "reason": "duplicate"}
    logger.info(f"Webhook payment {payment_id} failed for user={user_id} product={product.id}")
    return {"processed": False, "reason": "failure_recorded"}
