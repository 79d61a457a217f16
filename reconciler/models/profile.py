"""Profile model.

The storefront's user profile. Webhooks only touch the Stripe link and the
denormalized billing projection (subscription_status, current_plan,
partnership_tier); the subscriptions table stays the source of truth.
"""

import uuid

from reconciler.extensions import db


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255))
    stripe_customer_id = db.Column(db.String(255), unique=True, nullable=True)
    subscription_status = db.Column(db.String(50), nullable=True)
    current_plan = db.Column(db.String(255), nullable=True)
    partnership_tier = db.Column(db.String(50), nullable=True)
    referral_code = db.Column(db.String(20), unique=True, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    orders = db.relationship("Order", back_populates="user", lazy="dynamic")
    subscriptions = db.relationship(
        "Subscription", back_populates="user", lazy="dynamic"
    )
    purchases = db.relationship("Purchase", back_populates="user", lazy="dynamic")

    def __repr__(self):
        return f"<Profile {self.email}>"
