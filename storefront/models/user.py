"""User model.

Stores authentication credentials and profile info.
Flask-Login integration via UserMixin. Users are never hard-deleted;
carts, favorites, orders, payments and library rows cascade from here.
"""

import uuid

from flask_login import UserMixin

from storefront.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255))  # full name
    first_name = db.Column(db.String(255))
    last_name = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    profile_image_url = db.Column(db.String(1024))
    instagram_link = db.Column(db.String(1024))
    is_admin = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    sign_up_time = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    cart_items = db.relationship(
        "CartItem", back_populates="user", lazy="dynamic"
    )
    favorites = db.relationship(
        "Favorite", back_populates="user", lazy="dynamic"
    )
    orders = db.relationship(
        "Order", back_populates="user", lazy="dynamic"
    )
    payments = db.relationship(
        "Payment", back_populates="user", lazy="dynamic"
    )
    library_entries = db.relationship(
        "LibraryEntry", back_populates="user", lazy="dynamic"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "profileImageUrl": self.profile_image_url,
            "instagramLink": self.instagram_link,
            "isAdmin": bool(self.is_admin),
            "signUpTime": self.sign_up_time.isoformat() if self.sign_up_time else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.email}>"
