"""Inventory models.

- ProductVariant: a sellable size/SKU, looked up by its Stripe price ID.
- InventoryReservation: stock held for an open checkout session.
- InventoryTransaction: append-only stock movements. A sale is recorded at
  most once per variant per checkout session.
"""

import uuid

from reconciler.extensions import db


class ProductVariant(db.Model):
    __tablename__ = "product_variants"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_price_id = db.Column(db.String(255), unique=True, nullable=False)
    label = db.Column(db.String(255), nullable=True)
    track_inventory = db.Column(db.Boolean, default=True, nullable=False)
    stock_quantity = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<ProductVariant {self.label} ({self.stripe_price_id})>"


class InventoryReservation(db.Model):
    __tablename__ = "inventory_reservations"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    variant_id = db.Column(
        db.String(36), db.ForeignKey("product_variants.id"), nullable=False
    )
    quantity = db.Column(db.Integer, nullable=False)
    checkout_session_id = db.Column(db.String(255), nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<InventoryReservation {self.checkout_session_id} x{self.quantity}>"


class InventoryTransaction(db.Model):
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.UniqueConstraint(
            "variant_id", "checkout_session_id", "reason",
            name="uq_inventory_transactions_variant_session_reason",
        ),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    variant_id = db.Column(
        db.String(36), db.ForeignKey("product_variants.id"), nullable=False
    )
    quantity_change = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(50), nullable=False)  # sale | restock | adjustment
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=True)
    checkout_session_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<InventoryTransaction {self.reason} {self.quantity_change:+d}>"
