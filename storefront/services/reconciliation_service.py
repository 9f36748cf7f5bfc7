"""Reconciliation service: operator tooling for Payment / Library drift.

- diagnose: read-only report of payments with no library counterpart
- force_sync: retries add_to_library for every payment of a user
- grant_verified_access: single add_to_library with audit trail
- reconcile_record / bulk_reconcile: replay payments the webhook missed
- reconcile_from_provider: pull recent captured payments from Razorpay

Batch operations commit per item, so one failing item is rolled back on
its own and never aborts the rest of the batch. Each item is classified
rather than raised.
"""

import logging

import razorpay
from flask import current_app
from sqlalchemy.exc import IntegrityError

from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services import library_service, payment_service, razorpay_service
from storefront.services.library_service import (
    LibraryEntryExistsError,
    LibraryAccessError,
)
from storefront.services.payment_service import DuplicatePaymentError

logger = logging.getLogger(__name__)

# Per-item result classifications
SYNC_GRANTED = "access_granted"
SYNC_ALREADY = "already_has_access"
SYNC_ERROR = "error"

RECONCILED = "reconciled"
DUPLICATE = "duplicate"
UNVERIFIED = "unverified"
ERROR = "error"


# ──────────────────────────────────────────────
# Diagnose / force sync
# ──────────────────────────────────────────────

def diagnose(user_id):
    """Cross-reference a user's payments against their library rows.

    Lists every payment and every library row (verified or not) and
    reports product ids paid for but missing from the library.
    No mutation.
    """
    payments = payment_service.get_user_payments(user_id)
    library = library_service.get_all_library_entries(user_id)

    library_product_ids = {entry.product_id for entry in library}
    missing = []
    for payment in payments:
        if payment.product_id not in library_product_ids and payment.product_id not in missing:
            missing.append(payment.product_id)

    logger.info(
        f"Diagnosis for {user_id}: {len(payments)} payments, "
        f"{len(library)} library rows, missing access for {missing}"
    )

    return {
        "userId": user_id,
        "payments": len(payments),
        "libraryItems": len(library),
        "missingAccess": len(missing),
        "missingAccessProductIds": missing,
        "details": {
            "paymentRecords": [p.to_dict() for p in payments],
            "libraryItems": [e.to_dict() for e in library],
            "discrepancies": missing,
        },
    }


def force_sync(user_id, actor_user_id=None):
    """Re-run diagnose, then try add_to_library for each payment.

    add_to_library enforces the completed-payment precondition itself;
    refusals are classified per payment instead of aborting.
    """
    diagnosis = diagnose(user_id)
    payments = payment_service.get_user_payments(user_id)
    results = []

    for payment in payments:
        item = {"paymentId": payment.payment_id, "productId": payment.product_id}
        try:
            entry = library_service.add_to_library(user_id, payment.product_id)
            payment_service.log_payment_audit(user_id, "library.force_synced", {
                "payment_id": payment.payment_id,
                "product_id": payment.product_id,
                "library_id": entry.id,
            }, actor_user_id=actor_user_id)
            db.session.commit()
            item.update(status=SYNC_GRANTED, libraryId=entry.id)
            logger.info(f"Force sync: payment {payment.payment_id} -> library {entry.id}")
        except LibraryEntryExistsError:
            db.session.rollback()
            item["status"] = SYNC_ALREADY
        except LibraryAccessError as e:
            db.session.rollback()
            item.update(status=SYNC_ERROR, error=str(e))
            logger.warning(f"Force sync refused for payment {payment.payment_id}: {e}")
        except Exception as e:
            db.session.rollback()
            item.update(status=SYNC_ERROR, error=str(e))
            logger.error(f"Force sync failed for payment {payment.payment_id}: {e}", exc_info=True)
        results.append(item)

    granted = sum(1 for r in results if r["status"] == SYNC_GRANTED)
    logger.info(f"Force sync for {user_id} complete: {granted} access granted")

    return {
        "diagnosis": diagnosis,
        "syncResults": results,
        "newAccessGranted": granted,
    }


def grant_verified_access(user_id, product_id, actor_user_id=None):
    """Add one library row, classified like a force-sync item."""
    try:
        entry = library_service.add_to_library(user_id, product_id)
        payment_service.log_payment_audit(user_id, "library.granted_manually", {
            "product_id": product_id,
            "library_id": entry.id,
        }, actor_user_id=actor_user_id)
        db.session.commit()
    except LibraryEntryExistsError:
        db.session.rollback()
        return {"productId": product_id, "status": SYNC_ALREADY}
    except LibraryAccessError as e:
        db.session.rollback()
        return {"productId": product_id, "status": SYNC_ERROR, "error": str(e)}
    return {"productId": product_id, "status": SYNC_GRANTED, "libraryId": entry.id}


# ──────────────────────────────────────────────
# Manual reconciliation
# ──────────────────────────────────────────────

def _resolve_customer(record):
    """Find the User a reconciliation record belongs to (by id or email)."""
    customer = record.get("customer") or {}
    user_id = record.get("userId") or customer.get("userId") or customer.get("id")
    if user_id:
        return db.session.get(User, str(user_id))

    email = (customer.get("email") or record.get("email") or "").lower().strip()
    if email:
        return User.query.filter_by(email=email).first()
    return None


def _provider_check(payment_id, claimed_amount):
    """Confirm a claimed payment with Razorpay.

    Returns (amount_minor, reason). reason is None when the claim holds.
    """
    entity = razorpay_service.fetch_payment(payment_id)
    if entity.get("status") != "captured":
        return None, f"provider status is {entity.get('status')!r}"
    provider_amount = int(entity.get("amount") or 0)
    if claimed_amount is not None and int(claimed_amount) != provider_amount:
        return None, f"amount mismatch (claimed {claimed_amount}, provider {provider_amount})"
    return provider_amount, None


def reconcile_record(record, actor_user_id=None, verify_with_provider=None):
    """Replay create-Payment-then-add-Library for one missed payment.

    record: {paymentId, amount (paise), productId, customer: {userId|email}}

    When verify_with_provider is on (RECONCILE_VERIFY_WITH_PROVIDER by
    default) the claim is re-fetched from Razorpay and must be captured
    with a matching amount before anything is written.

    Returns a result dict with status reconciled / duplicate / unverified / error.
    """
    if verify_with_provider is None:
        verify_with_provider = current_app.config.get("RECONCILE_VERIFY_WITH_PROVIDER", True)

    payment_id = record.get("paymentId")
    result = {"paymentId": payment_id, "productId": record.get("productId")}

    try:
        if not payment_id:
            raise ValueError("paymentId is required")

        try:
            product_id = int(record.get("productId"))
        except (TypeError, ValueError):
            raise ValueError("productId is required")
        product = db.session.get(Product, product_id)
        if product is None:
            raise ValueError(f"Product {product_id} not found")

        user = _resolve_customer(record)
        if user is None:
            raise ValueError("Customer could not be matched to a user")

        amount_minor = record.get("amount")
        if verify_with_provider:
            amount_minor, reason = _provider_check(payment_id, amount_minor)
            if reason:
                result.update(status=UNVERIFIED, error=reason)
                logger.warning(f"Reconcile: payment {payment_id} not verified: {reason}")
                return result

        payment, entry = payment_service.record_verified_payment(
            user_id=user.id,
            product=product,
            payment_id=payment_id,
            amount_minor=amount_minor,
            source="manual_reconciliation",
            actor_user_id=actor_user_id,
        )
        db.session.commit()
        result.update(
            status=RECONCILED,
            userId=user.id,
            libraryGranted=entry is not None,
        )
        logger.info(f"Reconciled payment {payment_id} for {user.id}")
    except DuplicatePaymentError:
        db.session.rollback()
        result["status"] = DUPLICATE
    except IntegrityError as e:
        db.session.rollback()
        if payment_service.is_completed(payment_id):
            result["status"] = DUPLICATE
        else:
            result.update(status=ERROR, error="Conflicting library entry, retry")
            logger.warning(f"Reconcile: payment {payment_id} hit a constraint: {e.orig}")
    except (ValueError, razorpay.errors.BadRequestError) as e:
        db.session.rollback()
        result.update(status=ERROR, error=str(e))
        logger.warning(f"Reconcile: payment {payment_id} rejected: {e}")
    except Exception as e:
        db.session.rollback()
        result.update(status=ERROR, error=str(e))
        logger.error(f"Reconcile: payment {payment_id} failed: {e}", exc_info=True)

    return result


def _summarize(results):
    summary = {RECONCILED: 0, DUPLICATE: 0, UNVERIFIED: 0, ERROR: 0}
    for r in results:
        summary[r["status"]] = summary.get(r["status"], 0) + 1
    return summary


def bulk_reconcile(records, actor_user_id=None):
    """Reconcile a batch of externally supplied payment records."""
    results = [
        reconcile_record(r if isinstance(r, dict) else {}, actor_user_id=actor_user_id)
        for r in records
    ]
    summary = _summarize(results)
    logger.info(f"Bulk reconcile of {len(records)} records: {summary}")
    return {"results": results, "summary": summary}


def reconcile_from_provider(from_ts=None, to_ts=None, count=100, actor_user_id=None):
    """Pull captured payments from Razorpay and record any the webhook missed.

    Payments without user_id/product_id notes can't be attributed and are
    reported as errors. Records come straight from the provider, so they
    are not re-fetched a second time.
    """
    results = []
    for entity in razorpay_service.list_payments(from_ts, to_ts, count):
        if entity.get("status") != "captured":
            continue
        notes = entity.get("notes") or {}
        if isinstance(notes, list):
            notes = {}
        record = {
            "paymentId": entity.get("id"),
            "amount": entity.get("amount"),
            "productId": notes.get("product_id"),
            "customer": {"userId": notes.get("user_id"), "email": entity.get("email")},
        }
        results.append(reconcile_record(
            record, actor_user_id=actor_user_id, verify_with_provider=False
        ))

    summary = _summarize(results)
    logger.info(f"Provider reconcile: {summary}")
    return {"results": results, "summary": summary}
