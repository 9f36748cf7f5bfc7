"""Orders blueprint: /api/orders

Checkout snapshots the cart into an order; reads are scoped to the
current user.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from storefront.extensions import db
from storefront.services import order_service

logger = logging.getLogger(__name__)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.route("", methods=["POST"])
@login_required
def create_order():
    """Place an order from the current cart."""
    data = request.get_json(silent=True) or {}
    shipping_address = data.get("shippingAddress")
    if shipping_address is not None and not isinstance(shipping_address, dict):
        return jsonify({"message": "shippingAddress must be an object."}), 400

    try:
        order = order_service.create_order_from_cart(current_user.id, shipping_address)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400

    return jsonify(order.to_dict(include_items=True)), 201


@orders_bp.route("", methods=["GET"])
@login_required
def list_orders():
    orders = order_service.get_orders(current_user.id)
    return jsonify([o.to_dict(include_items=True) for o in orders])


@orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required
def get_order(order_id):
    order = order_service.get_order(order_id, user_id=current_user.id)
    if order is None:
        return jsonify({"message": "Order not found"}), 404
    return jsonify(order.to_dict(include_items=True, include_tracking=True))
