"""Tests for the failure-inspection CLI commands.

Covers:
- flask list-webhook-failures
- flask replay-webhook-failure
"""

from unittest.mock import MagicMock

from reconciler.extensions import db
from reconciler.models.billing import Subscription
from reconciler.models.stripe_event import StripeEvent
from reconciler.models.webhook_failure import WebhookFailure


def _failure(make_event, event_type="customer.subscription.created", obj=None, event_id="evt_cli_001"):
    payload = make_event(event_type, obj or {"id": "sub_cli"}, event_id=event_id)
    failure = WebhookFailure(
        stripe_event_id=event_id,
        event_type=event_type,
        payload=payload,
        error_message="Stripe is down",
    )
    db.session.add(failure)
    db.session.commit()
    return failure.id


class TestListWebhookFailures:
    """Tests for flask list-webhook-failures."""

    def test_empty(self, app):
        result = app.test_cli_runner().invoke(args=["list-webhook-failures"])
        assert result.exit_code == 0
        assert "No webhook failures recorded." in result.output

    def test_lists_failures(self, app, make_event):
        failure_id = _failure(make_event)

        result = app.test_cli_runner().invoke(args=["list-webhook-failures"])

        assert result.exit_code == 0
        assert failure_id in result.output
        assert "evt_cli_001" in result.output
        assert "Stripe is down" in result.output

    def test_filter_by_event_type(self, app, make_event):
        _failure(make_event, event_id="evt_cli_001")
        _failure(make_event, event_type="invoice.paid", obj={"id": "in_1"}, event_id="evt_cli_002")

        result = app.test_cli_runner().invoke(
            args=["list-webhook-failures", "--event-type", "invoice.paid"]
        )

        assert "evt_cli_002" in result.output
        assert "evt_cli_001" not in result.output


class TestReplayWebhookFailure:
    """Tests for flask replay-webhook-failure."""

    def test_unknown_failure_id(self, app):
        result = app.test_cli_runner().invoke(args=["replay-webhook-failure", "nope"])
        assert result.exit_code != 0
        assert "No webhook failure with id nope" in result.output

    def test_replay_processes_event(self, app, gateway, make_event, profile):
        obj = {
            "id": "sub_cli",
            "customer": "cus_test_123",
            "status": "active",
            "items": {"data": [{"price": {"id": "price_gold", "product": "prod_club"}}]},
        }
        failure_id = _failure(make_event, obj=obj)

        result = app.test_cli_runner().invoke(args=["replay-webhook-failure", failure_id])

        assert result.exit_code == 0, result.output
        assert "Replayed evt_cli_001 (customer.subscription.created): processed" in result.output
        assert Subscription.query.filter_by(stripe_subscription_id="sub_cli").count() == 1
        assert StripeEvent.query.filter_by(stripe_event_id="evt_cli_001").count() == 1

    def test_replay_already_processed(self, app, gateway, make_event):
        failure_id = _failure(make_event)
        db.session.add(StripeEvent(
            stripe_event_id="evt_cli_001",
            event_type="customer.subscription.created",
        ))
        db.session.commit()

        result = app.test_cli_runner().invoke(args=["replay-webhook-failure", failure_id])

        assert result.exit_code == 0
        assert "already processed" in result.output

    def test_replay_fails_again(self, app, gateway, make_event, profile):
        gateway.retrieve_subscription = MagicMock(side_effect=RuntimeError("still down"))
        failure_id = _failure(
            make_event,
            event_type="invoice.paid",
            obj={"id": "in_cli", "subscription": "sub_cli"},
        )

        result = app.test_cli_runner().invoke(args=["replay-webhook-failure", failure_id])

        assert result.exit_code != 0
        assert WebhookFailure.query.filter_by(stripe_event_id="evt_cli_001").count() == 2
        assert StripeEvent.query.count() == 0
