# Models package: import all models here so Alembic can discover them.

from storefront.models.user import User  # noqa: F401
from storefront.models.product import Category, Product  # noqa: F401
from storefront.models.cart import CartItem, Favorite  # noqa: F401
from storefront.models.order import Order, OrderItem, ShipmentTracking  # noqa: F401
from storefront.models.payment import Payment  # noqa: F401
from storefront.models.library import LibraryEntry  # noqa: F401
from storefront.models.audit import AuditEvent  # noqa: F401
