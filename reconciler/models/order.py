"""Order model.

One row per completed one-time-payment checkout, keyed by the Stripe
checkout session ID. Fulfillment fields are owned by the admin console;
the webhook only creates the row and refreshes payment fields.
"""

import uuid

from reconciler.extensions import db


class Order(db.Model):
    __tablename__ = "orders"

    STATUSES = [
        "pending",
        "processing",
        "shipped",
        "delivered",
        "cancelled",
        "refunded",
        "completed",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_session_id = db.Column(db.String(255), unique=True, nullable=False)
    stripe_customer_id = db.Column(db.String(255), nullable=True)
    stripe_payment_intent_id = db.Column(
        db.String(255), nullable=True, index=True
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    customer_email = db.Column(db.String(255), nullable=True)
    amount_total = db.Column(db.Integer, nullable=True)  # cents
    amount_subtotal = db.Column(db.Integer, nullable=True)  # cents
    amount_refunded = db.Column(db.Integer, default=0, nullable=False)  # cents, cumulative
    currency = db.Column(db.String(10), nullable=True)
    status = db.Column(db.String(50), default="pending", nullable=False)
    payment_status = db.Column(
        db.String(50), nullable=True
    )  # paid | unpaid | refunded | partial_refund
    payment_method_type = db.Column(db.String(50), nullable=True)
    fulfillment_status = db.Column(
        db.String(50), default="pending", nullable=False
    )
    shipping_name = db.Column(db.String(255), nullable=True)
    shipping_address = db.Column(db.JSON, nullable=True)
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # named metadata_ to avoid clashing with SQLAlchemy's Model.metadata
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("Profile", back_populates="orders")

    @property
    def order_number(self):
        return self.id[:8].upper()

    def __repr__(self):
        return f"<Order {self.stripe_session_id} ({self.status})>"
