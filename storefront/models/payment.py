"""Payment model.

One row per external Razorpay payment id. The unique constraint on
payment_id is the de-duplication mechanism for webhook deliveries.

A payment is "verified" only when status is completed AND the method is
METHOD_WEBHOOK_VERIFIED. Library access is derived from that pair.
"""

import json

from sqlalchemy import and_

from storefront.extensions import db
from storefront.models.product import _money


class Payment(db.Model):
    __tablename__ = "payments"

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_FAILED = "failed"
    STATUSES = [STATUS_PENDING, STATUS_COMPLETED, STATUS_FAILED]

    METHOD_WEBHOOK_VERIFIED = "razorpay_webhook_verified"

    id = db.Column(db.Integer, primary_key=True)
    payment_id = db.Column(db.String(255), unique=True)  # e.g. "pay_Abc123"
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer, db.ForeignKey("products.id"), nullable=False
    )
    razorpay_link_used = db.Column(db.String(1024))
    amount = db.Column(db.Numeric(10, 2), nullable=False)  # major units
    date_time = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    status = db.Column(
        db.String(50), nullable=False, default=STATUS_PENDING
    )  # pending | completed | failed
    payment_method = db.Column(db.String(100))
    issue_notes = db.Column(db.Text)  # JSON blob describing how it was verified
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="payments")
    product = db.relationship("Product")

    @property
    def is_verified(self):
        return (
            self.status == self.STATUS_COMPLETED
            and self.payment_method == self.METHOD_WEBHOOK_VERIFIED
        )

    @classmethod
    def verified_clause(cls):
        """SQL condition matching verified payments."""
        return and_(
            cls.status == cls.STATUS_COMPLETED,
            cls.payment_method == cls.METHOD_WEBHOOK_VERIFIED,
        )

    def to_dict(self):
        notes = None
        if self.issue_notes:
            try:
                notes = json.loads(self.issue_notes)
            except ValueError:
                notes = self.issue_notes
        return {
            "id": self.id,
            "paymentId": self.payment_id,
            "userId": self.user_id,
            "productId": self.product_id,
            "amount": _money(self.amount),
            "status": self.status,
            "paymentMethod": self.payment_method,
            "issueNotes": notes,
            "dateTime": self.date_time.isoformat() if self.date_time else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Payment {self.payment_id} ({self.status})>"
