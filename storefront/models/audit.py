"""Audit event model.

Logs payment verifications, access grants, reconciliation runs and admin
actions so an operator can trace how a user came to own a product.
"""

import uuid

from storefront.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    actor_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )  # None for provider-initiated events (webhooks)
    subject_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )  # whose payments / library were touched
    action = db.Column(db.String(255), nullable=False)  # e.g. "payment.verified"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid Python builtin clash
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
