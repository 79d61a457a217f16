"""Stripe event model (idempotency ledger).

Every webhook event is recorded by its Stripe event ID before it is
processed. The unique constraint on stripe_event_id is the gate: a second
insert for the same ID fails, which marks the delivery as a duplicate.
Rows are never updated or deleted.
"""

import uuid

from reconciler.extensions import db


class StripeEvent(db.Model):
    __tablename__ = "stripe_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "evt_1Abc..."
    event_type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "checkout.session.completed"
    first_seen_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeEvent {self.stripe_event_id} ({self.event_type})>"
