"""Webhook service: idempotency ledger, event routing and failure recording.

Responsible for:
- Recording every Stripe event ID before processing (stripe_events table)
- Dispatching a new event to exactly one reconciliation handler
- Persisting failed events for manual replay (webhook_failures table)

Transaction model: the ledger row and every handler mutation share one
transaction. A concurrent or repeated delivery of the same event ID hits
the unique constraint and is reported as a duplicate. If a handler raises,
the whole transaction (ledger row included) is rolled back, so Stripe's
redelivery is processed again from scratch.
"""

import enum
import logging

from sqlalchemy.exc import IntegrityError

from reconciler.extensions import db
from reconciler.models.stripe_event import StripeEvent
from reconciler.models.webhook_failure import WebhookFailure
from reconciler.services.reconciliation_service import (
    HandlerResult,
    handle_charge_refunded,
    handle_checkout_completed,
    handle_invoice_paid,
    handle_invoice_payment_failed,
    handle_payment_intent_succeeded,
    handle_subscription_change,
    handle_subscription_deleted,
)

logger = logging.getLogger(__name__)


# Allow-list: any event type not listed here is acknowledged and ignored.
EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_change,
    "customer.subscription.updated": handle_subscription_change,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.paid": handle_invoice_paid,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "payment_intent.succeeded": handle_payment_intent_succeeded,
    "charge.refunded": handle_charge_refunded,
}


class WebhookOutcome(enum.Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    FAILED = "failed"


def record_event_if_new(event):
    """Insert the ledger row for an event. Returns False if it was already recorded.

    The existence check is the unique constraint itself, so two concurrent
    deliveries of the same event cannot both get True.
    """
    db.session.add(StripeEvent(
        stripe_event_id=event.id,
        event_type=event.type,
    ))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


def dispatch_event(event, gateway):
    """Route an event to its handler. Handler exceptions propagate."""
    handler = EVENT_HANDLERS.get(event.type)
    if handler is None:
        logger.info(f"Unhandled event type {event.type} ({event.id}), acknowledging")
        return HandlerResult.IGNORED

    result = handler(event.data_object, gateway)
    if result is HandlerResult.SKIPPED:
        logger.warning(f"Event {event.id} ({event.type}) skipped")
    return result


def record_failure(event, error):
    """Persist a failed event for manual replay, in its own transaction.

    Returns the WebhookFailure, or None if it could not be written.
    """
    failure = WebhookFailure(
        stripe_event_id=event.id,
        event_type=event.type,
        payload=event.payload,
        error_message=str(error) or error.__class__.__name__,
    )
    try:
        db.session.add(failure)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"Could not record failure for event {event.id}: {e}", exc_info=True)
        return None
    return failure


def process_webhook_event(event, gateway):
    """Process a verified event end to end.

    Returns a WebhookOutcome. Never raises: failures are rolled back,
    recorded and reported as FAILED so the endpoint can return 500 and
    Stripe will redeliver.
    """
    try:
        if not record_event_if_new(event):
            logger.info(f"Duplicate webhook event {event.id}, skipping")
            return WebhookOutcome.DUPLICATE

        logger.info(f"Processing webhook event {event.id} ({event.type})")
        dispatch_event(event, gateway)
        db.session.commit()
    except Exception as e:
        logger.error(f"Error handling {event.type} ({event.id}): {e}", exc_info=True)
        db.session.rollback()
        record_failure(event, e)
        return WebhookOutcome.FAILED

    return WebhookOutcome.PROCESSED
