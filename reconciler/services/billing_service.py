"""Billing service: DB sync helpers for Stripe-backed records.

Responsible for:
- Resolving profiles from Stripe customer IDs
- Upserting subscriptions, purchases and orders keyed by their Stripe IDs
- Mirroring subscription state onto the profile projection

Every write here is an upsert or a conditional update, so handlers that
call these helpers can be re-run in full for the same event.
Helpers flush; the caller owns the commit.
"""

import logging
from datetime import datetime, timezone

from reconciler.extensions import db
from reconciler.models.billing import Purchase, Subscription
from reconciler.models.order import Order
from reconciler.models.profile import Profile

logger = logging.getLogger(__name__)


def get_profile_by_stripe_customer(stripe_customer_id):
    """Look up the profile linked to a Stripe customer ID, or None."""
    if not stripe_customer_id:
        return None
    return Profile.query.filter_by(stripe_customer_id=stripe_customer_id).first()


def link_stripe_customer(user_id, stripe_customer_id):
    """Attach a Stripe customer ID to a profile if not already linked.

    Returns the Profile, or None if no profile has this ID.
    """
    profile = db.session.get(Profile, user_id)
    if not profile:
        logger.warning(f"Cannot link customer {stripe_customer_id}: no profile {user_id}")
        return None

    if profile.stripe_customer_id != stripe_customer_id:
        profile.stripe_customer_id = stripe_customer_id
        db.session.flush()
    return profile


def upsert_subscription(user_id, snapshot):
    """Create or update a Subscription from a SubscriptionSnapshot.

    Keyed by stripe_subscription_id. The last processed snapshot wins.
    Returns the Subscription instance.
    """
    sub = Subscription.query.filter_by(
        stripe_subscription_id=snapshot.id
    ).first()

    if not sub:
        sub = Subscription(stripe_subscription_id=snapshot.id)
        db.session.add(sub)

    sub.user_id = user_id
    sub.stripe_customer_id = snapshot.customer_id
    sub.stripe_price_id = snapshot.price_id
    sub.stripe_product_id = snapshot.product_id
    sub.tier_key = snapshot.tier_key
    sub.size_key = snapshot.size_key
    sub.status = snapshot.status
    sub.current_period_start = snapshot.current_period_start
    sub.current_period_end = snapshot.current_period_end
    sub.cancel_at_period_end = snapshot.cancel_at_period_end
    sub.canceled_at = snapshot.canceled_at

    db.session.flush()
    return sub


def sync_profile_subscription(profile, status, plan_label):
    """Mirror subscription status and plan onto the profile (read projection)."""
    profile.subscription_status = status
    profile.current_plan = plan_label
    db.session.flush()


def has_other_active_subscription(user_id, excluding_subscription_id):
    """True if the user has an active or trialing subscription besides this one."""
    other = Subscription.query.filter(
        Subscription.user_id == user_id,
        Subscription.stripe_subscription_id != excluding_subscription_id,
        Subscription.status.in_(Subscription.ACTIVE_STATUSES),
    ).first()
    return other is not None


def upsert_order(session, user_id=None):
    """Create or refresh the Order for a completed checkout session.

    Keyed by stripe_session_id. On refresh only payment fields change;
    status and fulfillment are left alone so admin updates survive a
    redelivered event.

    Returns (order, created).
    """
    order = Order.query.filter_by(stripe_session_id=session.id).first()
    created = order is None

    if created:
        order = Order(
            stripe_session_id=session.id,
            status="completed",
            fulfillment_status="pending",
            user_id=user_id,
            metadata_=session.metadata,
        )
        db.session.add(order)

    order.stripe_customer_id = session.customer_id
    order.stripe_payment_intent_id = session.payment_intent_id
    order.customer_email = session.customer_email
    order.amount_total = session.amount_total
    order.amount_subtotal = session.amount_subtotal
    order.currency = session.currency
    order.payment_status = session.payment_status
    order.payment_method_type = session.payment_method_type
    order.shipping_name = session.shipping_name
    order.shipping_address = session.shipping_address

    db.session.flush()
    return order, created


def count_orders_for_user(user_id):
    return Order.query.filter_by(user_id=user_id).count()


def upsert_purchase(user_id, intent):
    """Record a succeeded one-time payment intent.

    Existing purchase: status is set to succeeded only if it isn't already
    (no write at all otherwise). New purchase: inserted as succeeded.

    Returns (purchase, changed).
    """
    purchase = Purchase.query.filter_by(
        stripe_payment_intent_id=intent.id
    ).first()

    if purchase:
        if purchase.status == "succeeded":
            return purchase, False
        purchase.status = "succeeded"
        db.session.flush()
        return purchase, True

    purchase = Purchase(
        user_id=user_id,
        stripe_payment_intent_id=intent.id,
        stripe_price_id=intent.price_id,
        stripe_product_id=intent.product_id,
        size_key=intent.size_key,
        amount=intent.amount,
        currency=intent.currency,
        status="succeeded",
    )
    db.session.add(purchase)
    db.session.flush()
    return purchase, True


def mark_subscription_canceled(sub, canceled_at=None):
    """Transition a subscription to canceled. Rows are never deleted."""
    sub.status = "canceled"
    sub.cancel_at_period_end = False
    sub.canceled_at = canceled_at or sub.canceled_at or datetime.now(timezone.utc)
    db.session.flush()
