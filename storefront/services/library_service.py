"""Library service: access checks and entitlement reads.

A user may access a product only when BOTH hold for the (user, product) pair:
    1. a Payment with status=completed and method=razorpay_webhook_verified
    2. a LibraryEntry with access_granted=True

Every read re-derives from those two tables; nothing is cached and the
access_granted flag is never trusted on its own.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import exists

from storefront.extensions import db
from storefront.models.library import LibraryEntry
from storefront.models.payment import Payment
from storefront.models.product import Product

logger = logging.getLogger(__name__)

# Access state for a (user, product) pair
ACCESS_NO_PAYMENT = "NO_PAYMENT"
ACCESS_PENDING = "PENDING"
ACCESS_VERIFIED = "VERIFIED"


class LibraryAccessError(ValueError):
    """add_to_library refused to write a row."""


class NoCompletedPaymentError(LibraryAccessError):
    pass


class LibraryEntryExistsError(LibraryAccessError):
    pass


def _verified_payment_exists(user_id, product_id):
    return exists().where(
        Payment.user_id == user_id,
        Payment.product_id == product_id,
        Payment.verified_clause(),
    )


def has_verified_payment(user_id, product_id):
    return bool(db.session.query(_verified_payment_exists(user_id, product_id)).scalar())


def has_library_entry(user_id, product_id):
    """True if a LibraryEntry with access_granted exists (payment not checked)."""
    return bool(db.session.query(
        exists().where(
            LibraryEntry.user_id == user_id,
            LibraryEntry.product_id == product_id,
            LibraryEntry.access_granted.is_(True),
        )
    ).scalar())


def has_access(user_id, product_id):
    """Both lookups must succeed; neither alone grants access."""
    verified = has_verified_payment(user_id, product_id)
    in_library = has_library_entry(user_id, product_id)
    result = bool(verified and in_library)
    logger.info(
        f"Access check: user={user_id} product={product_id} "
        f"verified_payment={verified} library={in_library} -> {result}"
    )
    return result


def get_library_entry(user_id, product_id):
    return LibraryEntry.query.filter_by(
        user_id=user_id, product_id=product_id
    ).first()


def get_user_library(user_id):
    """Library rows the user can actually use, newest purchase first.

    Rows without a matching verified payment are silently excluded.
    """
    entries = (
        LibraryEntry.query
        .join(Product, LibraryEntry.product_id == Product.id)
        .filter(
            LibraryEntry.user_id == user_id,
            LibraryEntry.access_granted.is_(True),
            exists().where(
                Payment.user_id == LibraryEntry.user_id,
                Payment.product_id == LibraryEntry.product_id,
                Payment.verified_clause(),
            ),
        )
        .order_by(LibraryEntry.purchase_date.desc(), LibraryEntry.id.desc())
        .all()
    )
    logger.info(f"Library for user {user_id}: {len(entries)} verified items")
    return entries


def get_all_library_entries(user_id):
    """Every library row for the user, verified or not. Diagnostics only."""
    return (
        LibraryEntry.query
        .filter_by(user_id=user_id)
        .order_by(LibraryEntry.purchase_date.desc(), LibraryEntry.id.desc())
        .all()
    )


def add_to_library(user_id, product_id, purchase_date=None):
    """Insert a LibraryEntry, enforcing the payment precondition.

    Never upserts. Flushes; the caller commits.

    Raises:
        NoCompletedPaymentError: No completed payment exists for the pair.
        LibraryEntryExistsError: The pair already has a library row.
    """
    completed = (
        Payment.query
        .filter_by(
            user_id=user_id,
            product_id=product_id,
            status=Payment.STATUS_COMPLETED,
        )
        .first()
    )
    if completed is None:
        raise NoCompletedPaymentError(
            "Cannot add to library: no completed payment found for this product"
        )

    if get_library_entry(user_id, product_id) is not None:
        raise LibraryEntryExistsError(
            "Library access already exists for this product"
        )

    entry = LibraryEntry(
        user_id=user_id,
        product_id=product_id,
        access_granted=True,
        purchase_date=purchase_date or datetime.now(timezone.utc),
    )
    db.session.add(entry)
    db.session.flush()
    logger.info(f"Library entry {entry.id} added: user={user_id} product={product_id}")
    return entry


def access_status(user_id, product_id):
    """NO_PAYMENT -> PENDING -> VERIFIED. There is no way back out of VERIFIED.

    PENDING covers a pending payment row, and a verified payment whose
    library row is still missing (force-sync grants it). Failed or
    unverified rows count as NO_PAYMENT.
    """
    if has_access(user_id, product_id):
        return ACCESS_VERIFIED

    pending = db.session.query(
        exists().where(
            Payment.user_id == user_id,
            Payment.product_id == product_id,
            Payment.status == Payment.STATUS_PENDING,
        )
    ).scalar()
    if pending or has_verified_payment(user_id, product_id):
        return ACCESS_PENDING
    return ACCESS_NO_PAYMENT
