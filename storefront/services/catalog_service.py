"""Catalog service: products and categories.

Responsible for:
- Listing products with optional category / name-search filters
- Admin create / update / delete of products
- Listing active categories and admin category maintenance (soft delete)

Free text from admins is sanitized with bleach.clean() to strip HTML.
Functions flush but do NOT commit; the caller commits.
"""

import logging
from decimal import Decimal, InvalidOperation

import bleach

from storefront.extensions import db
from storefront.models.library import LibraryEntry
from storefront.models.order import OrderItem
from storefront.models.payment import Payment
from storefront.models.product import Category, Product

logger = logging.getLogger(__name__)


class ProductInUseError(ValueError):
    """The product is referenced by payments, library rows or order lines."""

# Category filter values that mean "no filter"
ALL_CATEGORIES = ("all", "all-products")

# API field -> (column, kind)
_PRODUCT_FIELDS = {
    "name": ("name", "text"),
    "brand": ("brand", "text"),
    "description": ("description", "text"),
    "price": ("price", "money"),
    "originalPrice": ("original_price", "money"),
    "category": ("category", "text"),
    "imageUrl": ("image_url", "url"),
    "demoLink": ("demo_link", "url"),
    "accessLink": ("access_link", "url"),
    "razorpayLink": ("razorpay_link", "url"),
    "inStock": ("in_stock", "bool"),
    "isHighDemand": ("is_high_demand", "bool"),
    "hasInstantAccess": ("has_instant_access", "bool"),
}
_REQUIRED_PRODUCT_FIELDS = ("name", "brand", "price", "category", "imageUrl")


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(str(text), tags=[], strip=True).strip()


def parse_money(value, field="price"):
    """Parse a decimal amount in major units. Raises ValueError."""
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid {field}.")
    if amount < 0:
        raise ValueError(f"{field} cannot be negative.")
    return amount


def _apply_product_fields(product, data):
    for key, (attr, kind) in _PRODUCT_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if kind == "money":
            value = parse_money(value, key) if value not in (None, "") else None
        elif kind == "bool":
            value = bool(value)
        elif kind == "text":
            value = _sanitize(value)
        elif value is not None:
            value = str(value).strip() or None
        setattr(product, attr, value)


# ──────────────────────────────────────────────
# Products
# ──────────────────────────────────────────────

def get_products(category=None, search=None):
    """List products, newest first.

    `category` of None / "all" / "all-products" means every category.
    `search` is a case-insensitive substring match on the name.
    """
    query = Product.query

    if category and category not in ALL_CATEGORIES:
        query = query.filter(Product.category == category)

    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))

    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(product_id):
    return db.session.get(Product, product_id)


def create_product(data):
    """Create a product from an API payload.

    Raises:
        ValueError: If a required field is missing or a price is malformed.
    """
    missing = [f for f in _REQUIRED_PRODUCT_FIELDS if data.get(f) in (None, "")]
    if missing:
        raise ValueError(f"Missing required fields: {', '.join(missing)}")

    product = Product()
    _apply_product_fields(product, data)
    if not product.name or not product.brand or not product.category:
        raise ValueError("Name, brand and category cannot be blank.")

    db.session.add(product)
    db.session.flush()
    logger.info(f"Product created: {product.id} {product.name}")
    return product


def update_product(product_id, data):
    """Partial update. Returns None if the product does not exist."""
    product = db.session.get(Product, product_id)
    if product is None:
        return None
    _apply_product_fields(product, data)
    db.session.flush()
    return product


def delete_product(product_id):
    """Delete a product. Returns False if it did not exist.

    Cart and favorite rows go with it. Payments, library rows and order
    lines keep the product alive.

    Raises:
        ProductInUseError: Something that records a purchase references it.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return False

    for model in (Payment, LibraryEntry, OrderItem):
        if model.query.filter_by(product_id=product_id).first() is not None:
            raise ProductInUseError(
                "Product has payments, library entries or orders and cannot be deleted"
            )
    db.session.delete(product)
    db.session.flush()
    return True


def increment_view_count(product):
    product.view_count = (product.view_count or 0) + 1
    db.session.flush()


# ──────────────────────────────────────────────
# Categories
# ──────────────────────────────────────────────

def get_categories():
    return (
        Category.query
        .filter_by(is_active=True)
        .order_by(Category.name)
        .all()
    )


def create_category(name, description=None, icon=None):
    name = _sanitize(name)
    if not name:
        raise ValueError("Category name is required.")
    if Category.query.filter_by(name=name).first():
        raise ValueError(f"Category '{name}' already exists.")

    category = Category(
        name=name,
        description=_sanitize(description),
        icon=_sanitize(icon),
    )
    db.session.add(category)
    db.session.flush()
    return category


def update_category(category_id, data):
    category = db.session.get(Category, category_id)
    if category is None:
        return None
    if "name" in data:
        name = _sanitize(data["name"])
        if not name:
            raise ValueError("Category name is required.")
        category.name = name
    if "description" in data:
        category.description = _sanitize(data["description"])
    if "icon" in data:
        category.icon = _sanitize(data["icon"])
    if "isActive" in data:
        category.is_active = bool(data["isActive"])
    db.session.flush()
    return category


def delete_category(category_id):
    """Soft delete; the category disappears from listings."""
    category = db.session.get(Category, category_id)
    if category is None:
        return False
    category.is_active = False
    db.session.flush()
    return True
