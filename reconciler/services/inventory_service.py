"""Inventory service: stock movements triggered by paid checkouts.

Responsible for:
- Resolving a product variant from a Stripe price ID
- Decrementing stock once per variant per checkout session
- Releasing the reservations held for a checkout session
"""

import logging

from reconciler.extensions import db
from reconciler.models.inventory import (
    InventoryReservation,
    InventoryTransaction,
    ProductVariant,
)

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """A stock movement could not be applied."""


def get_variant_by_price_id(stripe_price_id):
    """Look up the ProductVariant sold under a Stripe price ID, or None."""
    if not stripe_price_id:
        return None
    return ProductVariant.query.filter_by(stripe_price_id=stripe_price_id).first()


def decrease_inventory(variant_id, quantity, order_id=None, checkout_session_id=None):
    """Record a sale and decrement stock for one variant.

    A sale is recorded at most once per (variant, checkout session); a
    repeat call for the same pair is a no-op and returns False.
    Stock is decremented with a conditional UPDATE so concurrent sales
    cannot drive it below zero.

    Returns True if stock was moved by this call.
    Raises InventoryError if the variant is unknown or stock is insufficient.
    """
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise InventoryError(f"Unknown variant {variant_id}")

    if checkout_session_id:
        already_sold = InventoryTransaction.query.filter_by(
            variant_id=variant_id,
            checkout_session_id=checkout_session_id,
            reason="sale",
        ).first()
        if already_sold:
            logger.info(
                f"Inventory already decremented for variant {variant_id} "
                f"in session {checkout_session_id}, skipping"
            )
            return False

    if variant.track_inventory:
        updated = ProductVariant.query.filter(
            ProductVariant.id == variant_id,
            ProductVariant.stock_quantity >= quantity,
        ).update(
            {"stock_quantity": ProductVariant.stock_quantity - quantity},
            synchronize_session="fetch",
        )
        if not updated:
            raise InventoryError(
                f"Insufficient stock for variant {variant_id} "
                f"(have {variant.stock_quantity}, need {quantity})"
            )

    db.session.add(InventoryTransaction(
        variant_id=variant_id,
        quantity_change=-quantity,
        reason="sale",
        order_id=order_id,
        checkout_session_id=checkout_session_id,
    ))
    db.session.flush()
    return True


def release_reservations(checkout_session_id):
    """Delete the reservations held for a checkout session.

    Returns the number of reservations released.
    """
    released = InventoryReservation.query.filter_by(
        checkout_session_id=checkout_session_id
    ).delete(synchronize_session=False)
    db.session.flush()
    if released:
        logger.info(f"Released {released} reservation(s) for session {checkout_session_id}")
    return released
