"""Payment tools blueprint: operator endpoints for payment/library drift.

Every route answers 503 unless PAYMENT_TOOLS_ENABLED is set, and then
requires an admin session. None of them is reachable by customers.

Routes (all POST):
    /api/diagnose-payments          read-only discrepancy report
    /api/sync-payments              force_sync for a user
    /api/grant-verified-access      add_to_library for one pair
    /api/complete-purchase          record one provider-verified purchase
    /api/verify-payment             look a payment up at Razorpay
    /api/reconcile-razorpay-payments  pull recent captured payments
    /api/bulk-reconcile-payments    replay a supplied batch of records
"""

import logging

import razorpay
from flask import Blueprint, jsonify, request
from flask_login import current_user

from storefront.decorators import admin_required, payment_tools_enabled
from storefront.services import payment_service, razorpay_service, reconciliation_service

logger = logging.getLogger(__name__)

payment_tools_bp = Blueprint("payment_tools", __name__, url_prefix="/api")


def _target_user_id(data):
    """The user an operator call is about; defaults to the caller."""
    return str(data.get("userId") or current_user.id)


def _parse_int(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"A valid {field} is required.")


@payment_tools_bp.route("/diagnose-payments", methods=["POST"])
@payment_tools_enabled
@admin_required
def diagnose_payments():
    data = request.get_json(silent=True) or {}
    return jsonify(reconciliation_service.diagnose(_target_user_id(data)))


@payment_tools_bp.route("/sync-payments", methods=["POST"])
@payment_tools_enabled
@admin_required
def sync_payments():
    data = request.get_json(silent=True) or {}
    result = reconciliation_service.force_sync(
        _target_user_id(data), actor_user_id=current_user.id
    )
    return jsonify(result)


@payment_tools_bp.route("/grant-verified-access", methods=["POST"])
@payment_tools_enabled
@admin_required
def grant_verified_access():
    data = request.get_json(silent=True) or {}
    try:
        product_id = _parse_int(data.get("productId"), "productId")
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    result = reconciliation_service.grant_verified_access(
        _target_user_id(data), product_id, actor_user_id=current_user.id
    )
    status_code = 400 if result["status"] == reconciliation_service.SYNC_ERROR else 200
    return jsonify(result), status_code


@payment_tools_bp.route("/complete-purchase", methods=["POST"])
@payment_tools_enabled
@admin_required
def complete_purchase():
    """Record a single purchase the webhook never delivered.

    Body: {paymentId, productId, userId?, amount?}. Goes through the
    same provider check as bulk reconciliation.
    """
    data = request.get_json(silent=True) or {}
    record = {
        "paymentId": data.get("paymentId"),
        "productId": data.get("productId"),
        "amount": data.get("amount"),
        "userId": _target_user_id(data),
    }
    result = reconciliation_service.reconcile_record(record, actor_user_id=current_user.id)
    status_code = 200 if result["status"] in (
        reconciliation_service.RECONCILED, reconciliation_service.DUPLICATE
    ) else 400
    return jsonify(result), status_code


@payment_tools_bp.route("/verify-payment", methods=["POST"])
@payment_tools_enabled
@admin_required
def verify_payment():
    """Compare a payment's provider state with what we have stored."""
    data = request.get_json(silent=True) or {}
    payment_id = data.get("paymentId")
    if not payment_id:
        return jsonify({"message": "paymentId is required."}), 400

    try:
        entity = razorpay_service.fetch_payment(payment_id)
    except razorpay.errors.BadRequestError as e:
        logger.warning(f"Razorpay lookup for {payment_id} failed: {e}")
        return jsonify({"message": f"Payment lookup failed: {e}"}), 404

    local = payment_service.get_payment_by_external_id(payment_id)
    return jsonify({
        "paymentId": payment_id,
        "providerStatus": entity.get("status"),
        "providerAmount": entity.get("amount"),
        "notes": entity.get("notes") or {},
        "recorded": local is not None,
        "localStatus": local.status if local else None,
        "verified": bool(local and local.is_verified),
    })


@payment_tools_bp.route("/reconcile-razorpay-payments", methods=["POST"])
@payment_tools_enabled
@admin_required
def reconcile_razorpay_payments():
    data = request.get_json(silent=True) or {}
    try:
        count = _parse_int(data.get("count", 100), "count")
        from_ts = _parse_int(data["from"], "from") if data.get("from") else None
        to_ts = _parse_int(data["to"], "to") if data.get("to") else None
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    try:
        result = reconciliation_service.reconcile_from_provider(
            from_ts, to_ts, min(max(count, 1), 100), actor_user_id=current_user.id
        )
    except razorpay.errors.BadRequestError as e:
        logger.warning(f"Razorpay payment listing failed: {e}")
        return jsonify({"message": f"Razorpay request failed: {e}"}), 502
    return jsonify(result)


@payment_tools_bp.route("/bulk-reconcile-payments", methods=["POST"])
@payment_tools_enabled
@admin_required
def bulk_reconcile_payments():
    """Body: {payments: [{paymentId, amount, productId, customer}, ...]}"""
    data = request.get_json(silent=True) or {}
    records = data.get("payments")
    if not isinstance(records, list) or not records:
        return jsonify({"message": "payments must be a non-empty list."}), 400

    logger.info(f"Bulk reconcile of {len(records)} records requested by {current_user.id}")
    return jsonify(reconciliation_service.bulk_reconcile(records, actor_user_id=current_user.id))
