"""Payment service: DB sync helpers for Razorpay payments.

Responsible for:
- Converting provider amounts (minor units) to stored major units
- Recording pending and failed payments
- Recording verified payments and granting the matching library entry
  in the same unit of work
- Payment history reads and audit logging

Functions flush but do NOT commit; the caller owns the transaction, so a
Payment and its LibraryEntry are committed together or not at all.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal

from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.payment import Payment
from storefront.services import library_service

logger = logging.getLogger(__name__)


class DuplicatePaymentError(ValueError):
    """A completed Payment already exists for this external payment id."""


def minor_to_major(amount):
    """Provider amounts are in paise; 9900 -> Decimal("99.00").

    Raises:
        ValueError: Missing, non-integer or negative amount.
    """
    if amount is None or isinstance(amount, bool):
        raise ValueError("Amount is required")
    try:
        minor = int(amount)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if minor < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    return (Decimal(minor) / 100).quantize(Decimal("0.01"))


def get_user_payments(user_id):
    return (
        Payment.query
        .filter_by(user_id=user_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def get_payment_by_external_id(payment_id):
    return Payment.query.filter_by(payment_id=payment_id).first()


def is_completed(payment_id):
    payment = get_payment_by_external_id(payment_id)
    return payment is not None and payment.status == Payment.STATUS_COMPLETED


def count_verified_payments(user_id, product_id):
    return (
        Payment.query
        .filter(
            Payment.user_id == user_id,
            Payment.product_id == product_id,
            Payment.verified_clause(),
        )
        .count()
    )


def create_pending_payment(user_id, product, payment_id, amount_minor):
    """Record an authorized-but-not-captured payment.

    Returns the Payment, or None if the id is already known.
    """
    if get_payment_by_external_id(payment_id) is not None:
        return None

    payment = Payment(
        user_id=user_id,
        product_id=product.id,
        payment_id=payment_id,
        amount=minor_to_major(amount_minor),
        status=Payment.STATUS_PENDING,
        razorpay_link_used=product.razorpay_link,
    )
    db.session.add(payment)
    db.session.flush()
    logger.info(f"Pending payment {payment_id} recorded for user={user_id} product={product.id}")
    return payment


def record_failed_payment(user_id, product, payment_id, amount_minor, reason=None):
    """Record a failed attempt, or mark a pending row as failed.

    Returns the Payment, or None if the id is already failed or completed.
    """
    payment = get_payment_by_external_id(payment_id)
    if payment is not None and payment.status != Payment.STATUS_PENDING:
        return None

    if payment is None:
        payment = Payment(
            user_id=user_id,
            product_id=product.id,
            payment_id=payment_id,
            amount=minor_to_major(amount_minor),
            razorpay_link_used=product.razorpay_link,
        )
        db.session.add(payment)
    payment.status = Payment.STATUS_FAILED
    if reason:
        payment.issue_notes = json.dumps({"failure_reason": reason})
    db.session.flush()
    return payment


def record_verified_payment(user_id, product, payment_id, amount_minor,
                            source="webhook", actor_user_id=None):
    """Record a verified payment and grant library access for it.

    A pending row with the same id is promoted to completed. The library
    entry is only created when the pair has none yet.

    Returns (payment, library_entry_or_None).

    Raises:
        DuplicatePaymentError: The id is already recorded as completed.
        ValueError: A pending row exists for a different user/product.
    """
    now = datetime.now(timezone.utc)
    notes = json.dumps({
        "webhook_verified": True,
        "verified_via": source,
        "verified_at": now.isoformat(),
        "product_name": product.name,
    })

    payment = get_payment_by_external_id(payment_id)
    if payment is not None:
        if payment.status == Payment.STATUS_COMPLETED:
            raise DuplicatePaymentError(f"Payment {payment_id} already processed")
        if payment.user_id != user_id or payment.product_id != product.id:
            raise ValueError(
                f"Payment {payment_id} is recorded for a different user or product"
            )
        payment.status = Payment.STATUS_COMPLETED
        payment.payment_method = Payment.METHOD_WEBHOOK_VERIFIED
        payment.amount = minor_to_major(amount_minor)
        payment.issue_notes = notes
    else:
        payment = Payment(
            user_id=user_id,
            product_id=product.id,
            payment_id=payment_id,
            amount=minor_to_major(amount_minor),
            status=Payment.STATUS_COMPLETED,
            payment_method=Payment.METHOD_WEBHOOK_VERIFIED,
            razorpay_link_used=product.razorpay_link,
            issue_notes=notes,
        )
        db.session.add(payment)
    db.session.flush()

    entry = None
    if library_service.get_library_entry(user_id, product.id) is None:
        entry = library_service.add_to_library(user_id, product.id, purchase_date=now)

    log_payment_audit(user_id, "payment.verified", {
        "payment_id": payment_id,
        "product_id": product.id,
        "amount": f"{payment.amount:.2f}",
        "source": source,
        "library_granted": entry is not None,
    }, actor_user_id=actor_user_id)

    return payment, entry


def log_payment_audit(subject_user_id, action, metadata=None, actor_user_id=None):
    """Log a payment-related audit event.

    Actor is None when the event is provider-initiated (webhooks).
    """
    event = AuditEvent(
        actor_user_id=actor_user_id,
        subject_user_id=subject_user_id,
        action=action,
        metadata_=metadata or {},
    )
    db.session.add(event)
    db.session.flush()
