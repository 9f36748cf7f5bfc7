"""Catalog models.

- Category: named grouping, soft-deleted via is_active.
- Product: a digital good. access_link is the purchased content and is
  only ever serialized for library reads, never for the public catalog.
"""

from storefront.extensions import db


def _money(value):
    """Render a Numeric column the way the API exposes it ("99.00")."""
    if value is None:
        return None
    return f"{value:.2f}"


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(255))  # icon name for the UI
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "isActive": bool(self.is_active),
        }

    def __repr__(self):
        return f"<Category {self.name}>"


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    original_price = db.Column(db.Numeric(10, 2))
    category = db.Column(db.String(255), nullable=False)  # Category.name
    image_url = db.Column(db.String(1024), nullable=False)
    demo_link = db.Column(db.String(1024))
    access_link = db.Column(db.String(1024))
    razorpay_link = db.Column(db.String(1024))  # hosted payment page
    rating = db.Column(db.Numeric(2, 1), default=0)
    review_count = db.Column(db.Integer, default=0)
    view_count = db.Column(db.Integer, default=0)
    sold_count = db.Column(db.Integer, default=0)
    in_stock = db.Column(db.Boolean, default=True)
    is_high_demand = db.Column(db.Boolean, default=False)
    has_instant_access = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self, include_access_link=False):
        data = {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "price": _money(self.price),
            "originalPrice": _money(self.original_price),
            "category": self.category,
            "imageUrl": self.image_url,
            "demoLink": self.demo_link,
            "razorpayLink": self.razorpay_link,
            "rating": f"{self.rating:.1f}" if self.rating is not None else None,
            "reviewCount": self.review_count or 0,
            "viewCount": self.view_count or 0,
            "soldCount": self.sold_count or 0,
            "inStock": bool(self.in_stock),
            "isHighDemand": bool(self.is_high_demand),
            "hasInstantAccess": bool(self.has_instant_access),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_access_link:
            data["accessLink"] = self.access_link
        return data

    def __repr__(self):
        return f"<Product {self.id} {self.name}>"
