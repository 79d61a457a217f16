"""Reconciliation handlers: one per routed Stripe event type.

Each handler decodes the event's data object once, applies a bounded set of
local mutations and returns a HandlerResult:

- APPLIED: local state now agrees with Stripe
- SKIPPED: an expected, non-retryable data problem (e.g. no profile for the
  customer); logged and acknowledged, since a redelivery would not help

Anything unexpected raises and is handled by the webhook pipeline. Handlers
must be safe to re-run in full for the same event, which is why every write
goes through an upsert or a "only if not already in that state" guard.
"""

import enum
import logging
from datetime import datetime, timezone

import stripe
from flask import current_app

from reconciler.extensions import db
from reconciler.models.billing import Subscription
from reconciler.models.order import Order
from reconciler.models.profile import Profile
from reconciler.services.analytics_service import track_server_event
from reconciler.services.billing_service import (
    count_orders_for_user,
    get_profile_by_stripe_customer,
    has_other_active_subscription,
    link_stripe_customer,
    mark_subscription_canceled,
    sync_profile_subscription,
    upsert_order,
    upsert_purchase,
    upsert_subscription,
)
from reconciler.services.email_service import queue_email
from reconciler.services.inventory_service import (
    InventoryError,
    decrease_inventory,
    get_variant_by_price_id,
    release_reservations,
)
from reconciler.services.referral_service import complete_referral, redeem_discount
from reconciler.services.stripe_objects import (
    ChargeSnapshot,
    CheckoutSession,
    InvoiceSnapshot,
    LineItem,
    PaymentIntentSnapshot,
    SubscriptionSnapshot,
)

logger = logging.getLogger(__name__)


class HandlerResult(enum.Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    IGNORED = "ignored"  # no handler registered for the event type


def _today():
    return datetime.now(timezone.utc).date().isoformat()


def _plan_name(gateway, snapshot):
    """Product name for emails. Cosmetic, so a Stripe error falls back to a label."""
    if snapshot.product_name:
        return snapshot.product_name
    if not snapshot.product_id:
        return "Subscription"
    try:
        product = gateway.retrieve_product(snapshot.product_id)
    except stripe.StripeError as e:
        logger.warning(f"Could not retrieve product {snapshot.product_id}: {e}")
        return "Subscription"
    return product.get("name") or "Subscription"


# ──────────────────────────────────────────────
# Shared procedures
# ──────────────────────────────────────────────

def apply_subscription_snapshot(snapshot):
    """Upsert a subscription and mirror it onto the owning profile."""
    profile = get_profile_by_stripe_customer(snapshot.customer_id)
    if not profile:
        logger.warning(
            f"No profile for customer {snapshot.customer_id}, "
            f"cannot attribute subscription {snapshot.id}"
        )
        return HandlerResult.SKIPPED

    if not snapshot.price_id or not snapshot.product_id:
        logger.warning(f"Subscription {snapshot.id} has no price or product, skipping")
        return HandlerResult.SKIPPED

    upsert_subscription(profile.id, snapshot)
    sync_profile_subscription(profile, snapshot.status, snapshot.plan_label)

    logger.info(f"Subscription {snapshot.id} {snapshot.status} for user {profile.id}")
    return HandlerResult.APPLIED


def reconcile_payment_intent(intent):
    """Record a succeeded payment intent as a Purchase for its customer."""
    profile = get_profile_by_stripe_customer(intent.customer_id)
    if not profile:
        logger.warning(
            f"No profile for customer {intent.customer_id}, "
            f"cannot attribute payment intent {intent.id}"
        )
        return HandlerResult.SKIPPED

    _, changed = upsert_purchase(profile.id, intent)
    if changed:
        logger.info(f"One-time purchase {intent.id} succeeded for user {profile.id}")
    else:
        logger.info(f"Purchase {intent.id} already succeeded, nothing to do")
    return HandlerResult.APPLIED


# ──────────────────────────────────────────────
# checkout.session.completed
# ──────────────────────────────────────────────

def handle_checkout_completed(obj, gateway):
    """Handle checkout.session.completed.

    Links the user to the Stripe customer, then branches on the kind of
    checkout: tier upgrade, subscription, or one-time payment.
    """
    session = CheckoutSession.from_stripe(obj)

    if not session.customer_id:
        logger.warning(f"checkout.session.completed {session.id} has no customer, skipping")
        return HandlerResult.SKIPPED

    profile = None
    if session.user_id:
        profile = link_stripe_customer(session.user_id, session.customer_id)

    if session.is_tier_upgrade:
        if not profile or not session.new_tier:
            logger.warning(f"Tier upgrade {session.id} has no user or new tier, skipping")
            return HandlerResult.SKIPPED
        _apply_tier_upgrade(profile, session.new_tier)
        return HandlerResult.APPLIED

    if session.mode == "subscription":
        return _reconcile_subscription_checkout(session, profile, gateway)
    if session.mode == "payment":
        return _reconcile_payment_checkout(session, profile, gateway)

    logger.info(f"Checkout {session.id} in mode {session.mode}, nothing to reconcile")
    return HandlerResult.SKIPPED


def _apply_tier_upgrade(profile, new_tier):
    old_tier = profile.partnership_tier or "none"
    profile.partnership_tier = new_tier
    db.session.flush()

    track_server_event("tier_upgraded", {
        "userId": profile.id,
        "oldTier": old_tier,
        "newTier": new_tier,
    })
    logger.info(f"User {profile.id} upgraded from {old_tier} to {new_tier}")


def _reconcile_subscription_checkout(session, profile, gateway):
    if not session.subscription_id:
        logger.warning(f"Subscription checkout {session.id} has no subscription, skipping")
        return HandlerResult.SKIPPED

    # The checkout payload lacks period boundaries; fetch the full object
    snapshot = SubscriptionSnapshot.from_stripe(
        gateway.retrieve_subscription(session.subscription_id)
    )
    result = apply_subscription_snapshot(snapshot)

    if session.customer_email:
        next_billing = snapshot.current_period_end
        queue_email(
            "subscription_confirmation",
            to_email=session.customer_email,
            template_data={
                "customerName": session.customer_name or "there",
                "customerEmail": session.customer_email,
                "planName": _plan_name(gateway, snapshot),
                "planPrice": snapshot.unit_amount or 0,
                "billingInterval": snapshot.interval or "month",
                "nextBillingDate": next_billing.date().isoformat() if next_billing else None,
                "currency": session.currency or "usd",
            },
            user_id=profile.id if profile else None,
        )

    if profile:
        complete_referral(profile.id)

    return result


def _reconcile_payment_checkout(session, profile, gateway):
    user_id = profile.id if profile else None
    order, created = upsert_order(session, user_id=user_id)

    line_items = [LineItem.from_stripe(item) for item in gateway.list_line_items(session.id)]
    _decrement_line_items(order, session, line_items)

    if session.customer_email:
        queue_email(
            "order_confirmation",
            to_email=session.customer_email,
            template_data={
                "orderNumber": order.order_number,
                "customerName": session.customer_name or "there",
                "customerEmail": session.customer_email,
                "items": [
                    {
                        "name": item.description,
                        "quantity": item.quantity,
                        "price": item.amount_total,
                    }
                    for item in line_items
                ],
                "subtotal": session.amount_subtotal or 0,
                "total": session.amount_total or 0,
                "currency": session.currency or "usd",
            },
            user_id=user_id,
        )

    # Payment is confirmed; stock is now held by the sale itself
    release_reservations(session.id)

    if session.payment_intent_id:
        intent = PaymentIntentSnapshot.from_stripe(
            gateway.retrieve_payment_intent(session.payment_intent_id)
        )
        reconcile_payment_intent(intent)

    if created:
        _on_new_order(order, session, profile)

    if profile:
        complete_referral(profile.id)

    logger.info(f"Order {order.id} reconciled for session {session.id}")
    return HandlerResult.APPLIED


def _decrement_line_items(order, session, line_items):
    """Decrement stock once per line item. One bad item never blocks the others.

    Returns the price IDs that failed.
    """
    failed = []
    for position, item in enumerate(line_items, start=1):
        try:
            with db.session.begin_nested():
                variant = get_variant_by_price_id(item.price_id)
                if not variant:
                    raise InventoryError(f"No variant for price {item.price_id}")
                decrease_inventory(
                    variant.id,
                    item.quantity,
                    order_id=order.id,
                    checkout_session_id=session.id,
                )
        except Exception as e:
            logger.error(
                f"Inventory decrement failed for item {position} "
                f"(price {item.price_id}) in session {session.id}: {e}"
            )
            failed.append(item.price_id)
    return failed


def _on_new_order(order, session, profile):
    """Side effects that belong to the first sighting of an order only."""
    if session.discount_id:
        redeem_discount(session.discount_id)

    if not profile:
        return

    if session.amount_total:
        track_server_event("purchase_completed", {
            "userId": profile.id,
            "orderId": order.id,
            "amount": session.amount_total / 100,
            "currency": session.currency or "usd",
        })

    if session.customer_email and count_orders_for_user(profile.id) == 1:
        site_url = current_app.config.get("SITE_URL", "").rstrip("/")
        queue_email(
            "welcome_new_customer",
            to_email=session.customer_email,
            template_data={
                "customerName": session.customer_name or "there",
                "referralCode": profile.referral_code or "",
                "referralUrl": f"{site_url}/referral/{profile.referral_code or ''}",
            },
            user_id=profile.id,
        )


# ──────────────────────────────────────────────
# customer.subscription.*
# ──────────────────────────────────────────────

def handle_subscription_change(obj, gateway):
    """Handle customer.subscription.created / customer.subscription.updated."""
    return apply_subscription_snapshot(SubscriptionSnapshot.from_stripe(obj))


def handle_subscription_deleted(obj, gateway):
    """Handle customer.subscription.deleted.

    Marks the row canceled. The profile projection only flips to canceled
    when the user has no other active or trialing subscription.
    """
    snapshot = SubscriptionSnapshot.from_stripe(obj)

    sub = Subscription.query.filter_by(stripe_subscription_id=snapshot.id).first()
    if not sub:
        logger.warning(f"subscription.deleted: no local record for sub={snapshot.id}")
        return HandlerResult.SKIPPED

    mark_subscription_canceled(sub, snapshot.canceled_at)

    profile = db.session.get(Profile, sub.user_id)
    if not profile:
        logger.warning(f"subscription.deleted: no profile {sub.user_id} for sub={snapshot.id}")
        return HandlerResult.APPLIED

    if has_other_active_subscription(profile.id, snapshot.id):
        logger.info(
            f"User {profile.id} still has an active subscription, "
            f"keeping profile status {profile.subscription_status}"
        )
    else:
        profile.subscription_status = "canceled"
        db.session.flush()

    if profile.email:
        access_until = snapshot.current_period_end or sub.current_period_end
        queue_email(
            "subscription_canceled",
            to_email=profile.email,
            template_data={
                "customerName": profile.full_name or "there",
                "planName": _plan_name(gateway, snapshot),
                "cancelDate": _today(),
                "accessUntil": access_until.date().isoformat() if access_until else None,
            },
            user_id=profile.id,
        )

    logger.info(f"Subscription {snapshot.id} canceled for user {profile.id}")
    return HandlerResult.APPLIED


# ──────────────────────────────────────────────
# invoice.*
# ──────────────────────────────────────────────

def handle_invoice_paid(obj, gateway):
    """Handle invoice.paid: refresh the subscription from Stripe."""
    invoice = InvoiceSnapshot.from_stripe(obj)
    if not invoice.subscription_id:
        logger.info(f"Invoice {invoice.id} is not for a subscription, skipping")
        return HandlerResult.SKIPPED

    snapshot = SubscriptionSnapshot.from_stripe(
        gateway.retrieve_subscription(invoice.subscription_id)
    )
    return apply_subscription_snapshot(snapshot)


def handle_invoice_payment_failed(obj, gateway):
    """Handle invoice.payment_failed: mark the subscription past_due.

    Dunning emails and cancellation are left to Stripe's retry settings.
    """
    invoice = InvoiceSnapshot.from_stripe(obj)
    if not invoice.subscription_id:
        logger.info(f"Invoice {invoice.id} is not for a subscription, skipping")
        return HandlerResult.SKIPPED

    sub = Subscription.query.filter_by(
        stripe_subscription_id=invoice.subscription_id
    ).first()
    if not sub:
        logger.warning(
            f"invoice.payment_failed: no local record for sub={invoice.subscription_id}"
        )
        return HandlerResult.SKIPPED

    if sub.status != "past_due":
        sub.status = "past_due"
        db.session.flush()

    logger.info(f"Invoice payment failed for subscription {invoice.subscription_id}")
    return HandlerResult.APPLIED


# ──────────────────────────────────────────────
# payment_intent.succeeded / charge.refunded
# ──────────────────────────────────────────────

def handle_payment_intent_succeeded(obj, gateway):
    """Handle payment_intent.succeeded."""
    return reconcile_payment_intent(PaymentIntentSnapshot.from_stripe(obj))


def handle_charge_refunded(obj, gateway):
    """Handle charge.refunded: flag the order and queue a refund email."""
    charge = ChargeSnapshot.from_stripe(obj)

    order = None
    if charge.payment_intent_id:
        order = Order.query.filter_by(
            stripe_payment_intent_id=charge.payment_intent_id
        ).first()
    if not order:
        logger.warning(f"No order found for refunded charge {charge.id}")
        return HandlerResult.SKIPPED

    # amount_refunded is cumulative on the charge, so an unchanged total
    # means this refund was already applied
    payment_status = "refunded" if charge.fully_refunded else "partial_refund"
    if (order.amount_refunded or 0) >= charge.amount_refunded:
        logger.info(
            f"Order {order.id} already reflects {charge.amount_refunded} refunded, skipping"
        )
        return HandlerResult.APPLIED

    order.amount_refunded = charge.amount_refunded
    order.payment_status = payment_status
    order.fulfillment_status = "refunded"
    if charge.fully_refunded:
        order.status = "refunded"
    db.session.flush()

    if order.customer_email:
        queue_email(
            "refund_confirmation",
            to_email=order.customer_email,
            template_data={
                "orderNumber": order.order_number,
                "customerName": "there",
                "refundAmount": f"{charge.amount_refunded / 100:.2f}",
                "currency": charge.currency,
                "reason": charge.refund_reason or "Customer request",
                "refundDate": _today(),
            },
            user_id=order.user_id,
        )

    logger.info(f"Order {order.id} marked {payment_status} for charge {charge.id}")
    return HandlerResult.APPLIED
