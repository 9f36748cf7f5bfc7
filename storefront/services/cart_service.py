"""Cart and favorites service.

Both collections are keyed by (user, product):
- add_to_cart merges into an existing row's quantity instead of inserting
- add_favorite is idempotent; the row's existence is the flag

Functions flush but do NOT commit; the caller commits.
"""

from storefront.extensions import db
from storefront.models.cart import CartItem, Favorite
from storefront.models.product import Product


def parse_quantity(value, default=1):
    """Parse a positive integer quantity. Raises ValueError."""
    if value is None:
        return default
    try:
        quantity = int(value)
    except (TypeError, ValueError):
        raise ValueError("Quantity must be an integer.")
    if quantity < 1:
        raise ValueError("Quantity must be at least 1.")
    return quantity


# ──────────────────────────────────────────────
# Cart
# ──────────────────────────────────────────────

def get_cart_items(user_id):
    return (
        CartItem.query
        .join(Product, CartItem.product_id == Product.id)
        .filter(CartItem.user_id == user_id)
        .order_by(CartItem.id)
        .all()
    )


def add_to_cart(user_id, product_id, quantity=1):
    """Add a product to the cart, merging quantities for repeat adds.

    Returns (cart_item, created).

    Raises:
        ValueError: If the product does not exist.
    """
    if db.session.get(Product, product_id) is None:
        raise ValueError("Product not found.")

    item = CartItem.query.filter_by(
        user_id=user_id, product_id=product_id
    ).first()

    if item:
        item.quantity = (item.quantity or 0) + quantity
        db.session.flush()
        return item, False

    item = CartItem(user_id=user_id, product_id=product_id, quantity=quantity)
    db.session.add(item)
    db.session.flush()
    return item, True


def _get_owned_item(user_id, item_id):
    item = db.session.get(CartItem, item_id)
    if item is None or item.user_id != user_id:
        return None
    return item


def update_cart_item(user_id, item_id, quantity):
    """Set an item's quantity. Returns None if the item isn't the user's."""
    item = _get_owned_item(user_id, item_id)
    if item is None:
        return None
    item.quantity = quantity
    db.session.flush()
    return item


def remove_from_cart(user_id, item_id):
    item = _get_owned_item(user_id, item_id)
    if item is None:
        return False
    db.session.delete(item)
    db.session.flush()
    return True


def clear_cart(user_id):
    CartItem.query.filter_by(user_id=user_id).delete()
    db.session.flush()


# ──────────────────────────────────────────────
# Favorites
# ──────────────────────────────────────────────

def get_favorites(user_id):
    return (
        Favorite.query
        .join(Product, Favorite.product_id == Product.id)
        .filter(Favorite.user_id == user_id)
        .order_by(Favorite.created_at.desc(), Favorite.id.desc())
        .all()
    )


def add_favorite(user_id, product_id):
    """Favorite a product. Returns (favorite, created)."""
    if db.session.get(Product, product_id) is None:
        raise ValueError("Product not found.")

    favorite = Favorite.query.filter_by(
        user_id=user_id, product_id=product_id
    ).first()
    if favorite:
        return favorite, False

    favorite = Favorite(user_id=user_id, product_id=product_id)
    db.session.add(favorite)
    db.session.flush()
    return favorite, True


def remove_favorite(user_id, product_id):
    deleted = Favorite.query.filter_by(
        user_id=user_id, product_id=product_id
    ).delete()
    db.session.flush()
    return deleted > 0


def is_favorite(user_id, product_id):
    return (
        Favorite.query.filter_by(user_id=user_id, product_id=product_id).first()
        is not None
    )
