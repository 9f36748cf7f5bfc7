"""Admin blueprint: /api/admin/*

Catalog maintenance and order fulfilment.
All routes except /check protected by @admin_required decorator.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError

from storefront.decorators import admin_required
from storefront.extensions import db
from storefront.services import catalog_service, order_service

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.route("/check", methods=["GET"])
@login_required
def check():
    return jsonify({"isAdmin": bool(current_user.is_admin), "userId": current_user.id})


# ──────────────────────────────────────────────
# Products
# ──────────────────────────────────────────────

@admin_bp.route("/products", methods=["POST"])
@admin_required
def create_product():
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.create_product(data)
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400

    logger.info(f"Admin {current_user.id} created product {product.id}")
    return jsonify(product.to_dict(include_access_link=True)), 201


@admin_bp.route("/products/<int:product_id>", methods=["PUT"])
@admin_required
def update_product(product_id):
    data = request.get_json(silent=True) or {}
    try:
        product = catalog_service.update_product(product_id, data)
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400
    if product is None:
        return jsonify({"message": "Product not found"}), 404

    db.session.commit()
    return jsonify(product.to_dict(include_access_link=True))


@admin_bp.route("/products/<int:product_id>", methods=["DELETE"])
@admin_required
def delete_product(product_id):
    try:
        deleted = catalog_service.delete_product(product_id)
        db.session.commit()
    except catalog_service.ProductInUseError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 409
    except IntegrityError:
        db.session.rollback()
        return jsonify({
            "message": "Product is still referenced and cannot be deleted"
        }), 409
    if not deleted:
        return jsonify({"message": "Product not found"}), 404

    logger.info(f"Admin {current_user.id} deleted product {product_id}")
    return jsonify({"message": "Product deleted"})


# ──────────────────────────────────────────────
# Categories
# ──────────────────────────────────────────────

@admin_bp.route("/categories", methods=["POST"])
@admin_required
def create_category():
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.create_category(
            data.get("name"), data.get("description"), data.get("icon")
        )
        db.session.commit()
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400
    return jsonify(category.to_dict()), 201


@admin_bp.route("/categories/<int:category_id>", methods=["PUT"])
@admin_required
def update_category(category_id):
    data = request.get_json(silent=True) or {}
    try:
        category = catalog_service.update_category(category_id, data)
        if category is not None:
            db.session.commit()
    except (ValueError, IntegrityError) as e:
        db.session.rollback()
        message = str(e) if isinstance(e, ValueError) else "Category name already exists."
        return jsonify({"message": message}), 400
    if category is None:
        return jsonify({"message": "Category not found"}), 404
    return jsonify(category.to_dict())


@admin_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@admin_required
def delete_category(category_id):
    if not catalog_service.delete_category(category_id):
        return jsonify({"message": "Category not found"}), 404
    db.session.commit()
    return jsonify({"message": "Category deleted"})


# ──────────────────────────────────────────────
# Orders
# ──────────────────────────────────────────────

@admin_bp.route("/orders/<int:order_id>/status", methods=["PUT"])
@admin_required
def update_order_status(order_id):
    """Body: {status, trackingData?: {trackingNumber, carrier, estimatedDelivery, trackingUrl}}"""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    try:
        order = order_service.update_order_status(
            order_id,
            data.get("status"),
            tracking_data=data.get("trackingData"),
            actor_user_id=current_user.id,
        )
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400
    if order is None:
        return jsonify({"message": "Order not found"}), 404

    db.session.commit()
    logger.info(f"Order {order.id} moved to {order.status} by {current_user.id}")
    return jsonify(order.to_dict(include_items=True, include_tracking=True))


@admin_bp.route("/orders/<int:order_id>/tracking", methods=["POST"])
@admin_required
def add_tracking_event(order_id):
    data = request.get_json(silent=True) or {}
    try:
        event = order_service.add_tracking_event(order_id, data)
    except ValueError as e:
        db.session.rollback()
        return jsonify({"message": str(e)}), 400
    if event is None:
        return jsonify({"message": "Order not found"}), 404

    db.session.commit()
    return jsonify(event.to_dict()), 201
