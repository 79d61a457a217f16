"""Tests for the webhook pipeline: idempotency, routing and failure handling.

Covers:
- Unknown event types (acknowledged, recorded, not processed)
- Duplicate deliveries (second delivery is a no-op)
- Handler failures (500, rollback, failure record, redelivery succeeds)
- Events a handler skips are still acknowledged
"""

from unittest.mock import MagicMock, patch

from reconciler.extensions import db
from reconciler.models.billing import Subscription
from reconciler.models.email_queue import EmailQueue
from reconciler.models.order import Order
from reconciler.models.stripe_event import StripeEvent
from reconciler.models.webhook_failure import WebhookFailure
from reconciler.services.reconciliation_service import HandlerResult
from reconciler.services.stripe_objects import InboundEvent
from reconciler.services.webhook_service import (
    EVENT_HANDLERS,
    WebhookOutcome,
    dispatch_event,
    process_webhook_event,
    record_event_if_new,
)


def _subscription(status="active", sub_id="sub_pipe", customer="cus_test_123"):
    return {
        "id": sub_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": False,
        "current_period_start": 1767225600,
        "current_period_end": 1769904000,
        "metadata": {"tier_key": "gold", "size_key": "gallon"},
        "items": {
            "data": [{
                "price": {
                    "id": "price_gold_gallon",
                    "product": "prod_club",
                    "unit_amount": 4900,
                    "currency": "usd",
                    "recurring": {"interval": "month"},
                }
            }]
        },
    }


def _payment_checkout(session_id="cs_pipe"):
    return {
        "id": session_id,
        "object": "checkout.session",
        "mode": "payment",
        "customer": "cus_test_123",
        "payment_intent": None,
        "customer_details": {"email": "jane@example.com", "name": "Jane Doe"},
        "amount_total": 3500,
        "amount_subtotal": 3500,
        "currency": "usd",
        "payment_status": "paid",
        "metadata": {},
    }


class TestEventRouting:
    """Tests for the allow-list of routed event types."""

    def test_allow_list(self):
        assert set(EVENT_HANDLERS) == {
            "checkout.session.completed",
            "customer.subscription.created",
            "customer.subscription.updated",
            "customer.subscription.deleted",
            "invoice.paid",
            "invoice.payment_failed",
            "payment_intent.succeeded",
            "charge.refunded",
        }

    def test_unknown_event_acknowledged(self, send_event):
        """Unrouted types -> 200, ledger row written, nothing else."""
        resp, event = send_event("customer.created", {"id": "cus_new"})
        assert resp.status_code == 200
        assert resp.get_json() == {"received": True}

        evt = StripeEvent.query.filter_by(stripe_event_id=event["id"]).first()
        assert evt is not None
        assert evt.event_type == "customer.created"

    def test_dispatch_unknown_type_is_ignored(self, make_event):
        event = InboundEvent.from_payload(make_event("product.updated", {"id": "prod_1"}))
        assert dispatch_event(event, MagicMock()) is HandlerResult.IGNORED

    def test_dispatch_calls_handler_with_data_object(self, make_event):
        handler = MagicMock(return_value=HandlerResult.APPLIED)
        gateway = MagicMock()
        event = InboundEvent.from_payload(make_event("invoice.paid", {"id": "in_1"}))

        with patch.dict(EVENT_HANDLERS, {"invoice.paid": handler}):
            result = dispatch_event(event, gateway)

        assert result is HandlerResult.APPLIED
        handler.assert_called_once_with({"id": "in_1"}, gateway)

    def test_skipped_event_still_acknowledged(self, send_event):
        """A subscription for an unknown customer is skipped, not retried."""
        resp, event = send_event(
            "customer.subscription.created",
            _subscription(customer="cus_nobody"),
        )
        assert resp.status_code == 200
        assert Subscription.query.count() == 0
        assert StripeEvent.query.filter_by(stripe_event_id=event["id"]).count() == 1


class TestIdempotency:
    """Tests for duplicate event handling."""

    def test_record_event_if_new(self, make_event):
        event = InboundEvent.from_payload(make_event("invoice.paid", {}, event_id="evt_once"))
        assert record_event_if_new(event) is True
        db.session.commit()

        assert record_event_if_new(event) is False
        assert StripeEvent.query.filter_by(stripe_event_id="evt_once").count() == 1

    def test_pre_recorded_event_is_duplicate(self, send_event):
        db.session.add(StripeEvent(
            stripe_event_id="evt_duplicate_123",
            event_type="checkout.session.completed",
        ))
        db.session.commit()

        resp, _ = send_event(
            "checkout.session.completed",
            _payment_checkout(),
            event_id="evt_duplicate_123",
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"received": True, "duplicate": True}
        assert Order.query.count() == 0

    def test_redelivery_applies_effects_once(self, send_event, gateway, profile):
        gateway.retrieve_subscription.return_value = _subscription()
        checkout = {
            "id": "cs_sub_dup",
            "object": "checkout.session",
            "mode": "subscription",
            "customer": "cus_test_123",
            "subscription": "sub_pipe",
            "customer_details": {"email": "jane@example.com", "name": "Jane Doe"},
            "currency": "usd",
            "metadata": {"userId": profile.id},
        }

        first, _ = send_event("checkout.session.completed", checkout, event_id="evt_dup_001")
        second, _ = send_event("checkout.session.completed", checkout, event_id="evt_dup_001")

        assert first.get_json() == {"received": True}
        assert second.get_json() == {"received": True, "duplicate": True}
        assert Subscription.query.count() == 1
        assert EmailQueue.query.filter_by(
            email_type="subscription_confirmation"
        ).count() == 1
        assert gateway.retrieve_subscription.call_count == 1


class TestHandlerFailure:
    """A failing handler rolls back everything and asks Stripe to retry."""

    def test_failure_returns_500_and_is_recorded(self, send_event, gateway, profile):
        gateway.retrieve_subscription.side_effect = RuntimeError("Stripe is down")
        checkout = {
            "id": "cs_fail",
            "mode": "subscription",
            "customer": "cus_test_123",
            "subscription": "sub_pipe",
            "metadata": {"userId": profile.id},
        }

        resp, event = send_event("checkout.session.completed", checkout, event_id="evt_fail_001")

        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Webhook handler failed"}

        # Ledger row rolled back with the handler's writes
        assert StripeEvent.query.filter_by(stripe_event_id="evt_fail_001").count() == 0

        failure = WebhookFailure.query.filter_by(stripe_event_id="evt_fail_001").one()
        assert failure.event_type == "checkout.session.completed"
        assert failure.payload == event
        assert "Stripe is down" in failure.error_message

    def test_redelivery_after_failure_succeeds(self, send_event, gateway, profile):
        checkout = {
            "id": "cs_retry",
            "mode": "subscription",
            "customer": "cus_test_123",
            "subscription": "sub_pipe",
            "customer_details": {"email": "jane@example.com"},
            "metadata": {"userId": profile.id},
        }

        gateway.retrieve_subscription.side_effect = RuntimeError("timeout")
        resp, _ = send_event("checkout.session.completed", checkout, event_id="evt_retry_001")
        assert resp.status_code == 500

        gateway.retrieve_subscription.side_effect = None
        gateway.retrieve_subscription.return_value = _subscription()
        resp, _ = send_event("checkout.session.completed", checkout, event_id="evt_retry_001")

        assert resp.status_code == 200
        assert resp.get_json() == {"received": True}
        assert Subscription.query.filter_by(stripe_subscription_id="sub_pipe").count() == 1
        assert StripeEvent.query.filter_by(stripe_event_id="evt_retry_001").count() == 1

    def test_partial_writes_rolled_back(self, send_event, gateway, profile):
        """The order written before the failure does not survive."""
        gateway.list_line_items.side_effect = RuntimeError("line items unavailable")

        resp, _ = send_event("checkout.session.completed", _payment_checkout("cs_partial"))

        assert resp.status_code == 500
        assert Order.query.filter_by(stripe_session_id="cs_partial").count() == 0

    def test_process_webhook_event_outcomes(self, gateway, make_event):
        event = InboundEvent.from_payload(make_event("customer.created", {}, event_id="evt_o1"))
        assert process_webhook_event(event, gateway) is WebhookOutcome.PROCESSED
        assert process_webhook_event(event, gateway) is WebhookOutcome.DUPLICATE

        broken = InboundEvent.from_payload(make_event("invoice.paid", {}, event_id="evt_o2"))
        with patch.dict(EVENT_HANDLERS, {"invoice.paid": MagicMock(side_effect=KeyError("id"))}):
            assert process_webhook_event(broken, gateway) is WebhookOutcome.FAILED

        assert WebhookFailure.query.filter_by(stripe_event_id="evt_o2").count() == 1
