"""Billing models.

- Subscription: one row per Stripe subscription, upserted on every
  create/update so it always reflects the latest known state. Deletion is
  a status transition to "canceled", never a row delete.
- Purchase: one row per successful one-time payment intent.
"""

import uuid

from reconciler.extensions import db


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    # -- Valid statuses (synced from Stripe) --
    STATUSES = [
        "incomplete",
        "incomplete_expired",
        "trialing",
        "active",
        "past_due",
        "canceled",
        "unpaid",
        "paused",
    ]
    ACTIVE_STATUSES = ("active", "trialing")

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=False
    )
    stripe_subscription_id = db.Column(
        db.String(255), unique=True, nullable=False
    )
    stripe_customer_id = db.Column(db.String(255), nullable=True)
    stripe_price_id = db.Column(db.String(255), nullable=True)
    stripe_product_id = db.Column(db.String(255), nullable=True)
    tier_key = db.Column(db.String(100), nullable=True)
    size_key = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(50), nullable=False)
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=True)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, default=False)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("Profile", back_populates="subscriptions")

    def __repr__(self):
        return f"<Subscription {self.stripe_subscription_id} ({self.status})>"


class Purchase(db.Model):
    __tablename__ = "purchases"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=False
    )
    stripe_payment_intent_id = db.Column(
        db.String(255), unique=True, nullable=True
    )
    stripe_price_id = db.Column(db.String(255), nullable=False, default="")
    stripe_product_id = db.Column(db.String(255), nullable=False, default="")
    size_key = db.Column(db.String(100), nullable=True)
    amount = db.Column(db.Integer, nullable=False)  # cents
    currency = db.Column(db.String(10), nullable=True)
    status = db.Column(db.String(50), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("Profile", back_populates="purchases")

    def __repr__(self):
        return f"<Purchase {self.stripe_payment_intent_id} ({self.status})>"
