"""Order models.

- Order: a checkout of the user's cart, plus shipment state.
- OrderItem: line item. `price` is captured at checkout and never
  re-derived from the product afterwards.
- ShipmentTracking: carrier events appended by admins.
"""

from storefront.extensions import db
from storefront.models.product import _money


class Order(db.Model):
    __tablename__ = "orders"

    # -- Valid statuses --
    STATUSES = [
        "pending",
        "paid",
        "processing",
        "shipped",
        "out_for_delivery",
        "delivered",
        "cancelled",
    ]
    CARRIERS = ["fedex", "ups", "usps", "dhl"]

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(50), nullable=False, default="pending")
    tracking_number = db.Column(db.String(255))
    shipping_carrier = db.Column(db.String(50))
    estimated_delivery = db.Column(db.DateTime(timezone=True))
    shipped_at = db.Column(db.DateTime(timezone=True))
    delivered_at = db.Column(db.DateTime(timezone=True))
    shipping_address = db.Column(db.JSON)
    tracking_url = db.Column(db.String(1024))
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="orders")
    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    tracking_events = db.relationship(
        "ShipmentTracking",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="ShipmentTracking.event_time.desc()",
    )

    def to_dict(self, include_items=False, include_tracking=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "totalAmount": _money(self.total_amount),
            "status": self.status,
            "trackingNumber": self.tracking_number,
            "shippingCarrier": self.shipping_carrier,
            "estimatedDelivery": (
                self.estimated_delivery.isoformat() if self.estimated_delivery else None
            ),
            "shippedAt": self.shipped_at.isoformat() if self.shipped_at else None,
            "deliveredAt": self.delivered_at.isoformat() if self.delivered_at else None,
            "shippingAddress": self.shipping_address,
            "trackingUrl": self.tracking_url,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        if include_tracking:
            data["tracking"] = [event.to_dict() for event in self.tracking_events]
        return data

    def __repr__(self):
        return f"<Order {self.id} ({self.status})>"


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id"), nullable=False
    )
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)  # unit price at checkout
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "productId": self.product_id,
            "productName": self.product.name if self.product else None,
            "quantity": self.quantity,
            "price": _money(self.price),
        }

    def __repr__(self):
        return f"<OrderItem order={self.order_id} product={self.product_id}>"


class ShipmentTracking(db.Model):
    __tablename__ = "shipment_tracking"

    # -- Carrier event statuses --
    STATUSES = ["in_transit", "out_for_delivery", "delivered", "exception"]

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tracking_number = db.Column(db.String(255), nullable=False)
    carrier = db.Column(db.String(50), nullable=False)
    status = db.Column(db.String(50), nullable=False)
    location = db.Column(db.String(255))
    description = db.Column(db.Text)
    event_time = db.Column(db.DateTime(timezone=True), nullable=False)
    estimated_delivery = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    order = db.relationship("Order", back_populates="tracking_events")

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "trackingNumber": self.tracking_number,
            "carrier": self.carrier,
            "status": self.status,
            "location": self.location,
            "description": self.description,
            "eventTime": self.event_time.isoformat() if self.event_time else None,
        }

    def __repr__(self):
        return f"<ShipmentTracking order={self.order_id} {self.status}>"
