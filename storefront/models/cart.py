"""Cart and favorites models.

Both are keyed by (user, product). A duplicate cart add merges into the
existing row's quantity; a favorite row's existence is the favorited flag.
"""

from storefront.extensions import db


class CartItem(db.Model):
    __tablename__ = "cart_items"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    quantity = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="cart_items")
    product = db.relationship("Product")

    def to_dict(self, include_product=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        return data

    def __repr__(self):
        return f"<CartItem user={self.user_id} product={self.product_id} x{self.quantity}>"


class Favorite(db.Model):
    __tablename__ = "favorites"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_favorite_user_product"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="favorites")
    product = db.relationship("Product")

    def to_dict(self, include_product=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict()
        return data

    def __repr__(self):
        return f"<Favorite user={self.user_id} product={self.product_id}>"
