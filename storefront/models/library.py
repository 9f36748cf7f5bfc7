"""Library model (table: library).

A row means "this user bought this product". It is inert on its own:
reads only honour it when a verified Payment exists for the same
(user, product). At most one row per pair; there is no revocation path.
"""

from storefront.extensions import db


class LibraryEntry(db.Model):
    __tablename__ = "library"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_library_user_product"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id"), nullable=False
    )
    access_granted = db.Column(db.Boolean, default=True, nullable=False)
    purchase_date = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="library_entries")
    product = db.relationship("Product")

    def to_dict(self, include_product=False):
        data = {
            "id": self.id,
            "userId": self.user_id,
            "productId": self.product_id,
            "accessGranted": bool(self.access_granted),
            "purchaseDate": self.purchase_date.isoformat() if self.purchase_date else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if include_product and self.product is not None:
            data["product"] = self.product.to_dict(include_access_link=True)
        return data

    def __repr__(self):
        return f"<LibraryEntry user={self.user_id} product={self.product_id}>"
