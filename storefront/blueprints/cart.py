"""Cart and favorites blueprint: /api/cart, /api/favorites

All routes require a session. Items are always scoped to current_user;
another user's item id answers 404.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from storefront.extensions import db
from storefront.services import cart_service

cart_bp = Blueprint("cart", __name__, url_prefix="/api")


def _parse_product_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError("A valid productId is required.")


# ──────────────────────────────────────────────
# Cart
# ──────────────────────────────────────────────

@cart_bp.route("/cart", methods=["GET"])
@login_required
def get_cart():
    items = cart_service.get_cart_items(current_user.id)
    return jsonify([item.to_dict(include_product=True) for item in items])


@cart_bp.route("/cart", methods=["POST"])
@login_required
def add_to_cart():
    """Add a product; a repeat add merges into the existing quantity."""
    data = request.get_json(silent=True) or {}
    try:
        product_id = _parse_product_id(data.get("productId"))
        quantity = cart_service.parse_quantity(data.get("quantity"))
        item, created = cart_service.add_to_cart(current_user.id, product_id, quantity)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db.session.commit()
    return jsonify(item.to_dict(include_product=True)), 201 if created else 200


@cart_bp.route("/cart/<int:item_id>", methods=["PUT"])
@login_required
def update_cart_item(item_id):
    data = request.get_json(silent=True) or {}
    try:
        quantity = cart_service.parse_quantity(data.get("quantity"), default=None)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400
    if quantity is None:
        return jsonify({"message": "Quantity is required."}), 400

    item = cart_service.update_cart_item(current_user.id, item_id, quantity)
    if item is None:
        return jsonify({"message": "Cart item not found"}), 404

    db.session.commit()
    return jsonify(item.to_dict(include_product=True))


@cart_bp.route("/cart/<int:item_id>", methods=["DELETE"])
@login_required
def remove_cart_item(item_id):
    if not cart_service.remove_from_cart(current_user.id, item_id):
        return jsonify({"message": "Cart item not found"}), 404
    db.session.commit()
    return jsonify({"message": "Item removed from cart"})


@cart_bp.route("/cart", methods=["DELETE"])
@login_required
def clear_cart():
    cart_service.clear_cart(current_user.id)
    db.session.commit()
    return jsonify({"message": "Cart cleared"})


# ──────────────────────────────────────────────
# Favorites
# ──────────────────────────────────────────────

@cart_bp.route("/favorites", methods=["GET"])
@login_required
def get_favorites():
    favorites = cart_service.get_favorites(current_user.id)
    return jsonify([f.to_dict(include_product=True) for f in favorites])


@cart_bp.route("/favorites", methods=["POST"])
@login_required
def add_favorite():
    data = request.get_json(silent=True) or {}
    try:
        product_id = _parse_product_id(data.get("productId"))
        favorite, created = cart_service.add_favorite(current_user.id, product_id)
    except ValueError as e:
        return jsonify({"message": str(e)}), 400

    db.session.commit()
    return jsonify(favorite.to_dict(include_product=True)), 201 if created else 200


@cart_bp.route("/favorites/<int:product_id>", methods=["DELETE"])
@login_required
def remove_favorite(product_id):
    if not cart_service.remove_favorite(current_user.id, product_id):
        return jsonify({"message": "Favorite not found"}), 404
    db.session.commit()
    return jsonify({"message": "Removed from favorites"})


@cart_bp.route("/favorites/<int:product_id>/check", methods=["GET"])
@login_required
def check_favorite(product_id):
    return jsonify({"isFavorite": cart_service.is_favorite(current_user.id, product_id)})
