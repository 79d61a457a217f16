"""Tests for webhook signature verification.

Covers:
- Multi-secret verification (any configured secret may sign)
- Rejection of wrong secrets, stale timestamps and tampered bodies
- Payloads that verify but are not valid events
- Endpoint error responses (missing/invalid signature, no secret configured)
"""

import json
import time

import pytest

from reconciler.extensions import db
from reconciler.models.stripe_event import StripeEvent
from reconciler.services.stripe_service import verify_webhook_signature

SECRETS = ["whsec_live_fake", "whsec_test_fake"]


def _payload(event_id="evt_sig_001", event_type="customer.created"):
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": {"id": "cus_sig"}},
    })


class TestVerifyWebhookSignature:
    """Unit tests for verify_webhook_signature()."""

    def test_first_secret_verifies(self, sign_payload):
        payload = _payload()
        event = verify_webhook_signature(
            payload, sign_payload(payload, "whsec_live_fake"), SECRETS
        )
        assert event is not None
        assert event.id == "evt_sig_001"
        assert event.type == "customer.created"
        assert event.data_object == {"id": "cus_sig"}

    def test_second_secret_verifies(self, sign_payload):
        """A test-mode event is accepted by a deployment holding both secrets."""
        payload = _payload()
        event = verify_webhook_signature(
            payload, sign_payload(payload, "whsec_test_fake"), SECRETS
        )
        assert event is not None
        assert event.id == "evt_sig_001"

    def test_unknown_secret_returns_none(self, sign_payload):
        payload = _payload()
        header = sign_payload(payload, "whsec_someone_else")
        assert verify_webhook_signature(payload, header, SECRETS) is None

    def test_missing_header_returns_none(self):
        assert verify_webhook_signature(_payload(), None, SECRETS) is None
        assert verify_webhook_signature(_payload(), "", SECRETS) is None

    def test_no_secrets_returns_none(self, sign_payload):
        payload = _payload()
        assert verify_webhook_signature(payload, sign_payload(payload), []) is None

    def test_stale_timestamp_rejected(self, sign_payload):
        payload = _payload()
        header = sign_payload(payload, timestamp=int(time.time()) - 3600)
        assert verify_webhook_signature(payload, header, SECRETS) is None

    def test_tampered_body_rejected(self, sign_payload):
        payload = _payload()
        header = sign_payload(payload)
        tampered = payload.replace("cus_sig", "cus_evil")
        assert verify_webhook_signature(tampered, header, SECRETS) is None

    def test_reserialized_body_rejected(self, sign_payload):
        """The HMAC covers the exact bytes; re-encoding the JSON breaks it."""
        payload = _payload()
        header = sign_payload(payload)
        reserialized = json.dumps(json.loads(payload), indent=2)
        assert verify_webhook_signature(reserialized, header, SECRETS) is None

    def test_verified_non_json_raises(self, sign_payload):
        payload = "not json at all"
        with pytest.raises(ValueError):
            verify_webhook_signature(payload, sign_payload(payload), SECRETS)

    def test_verified_event_without_id_raises(self, sign_payload):
        payload = json.dumps({"type": "invoice.paid", "data": {"object": {}}})
        with pytest.raises(ValueError):
            verify_webhook_signature(payload, sign_payload(payload), SECRETS)


class TestWebhookEndpointRejections:
    """Requests that never reach event processing."""

    def test_missing_signature_returns_400(self, client):
        resp = client.post(
            "/api/stripe/webhook",
            data=_payload(),
            content_type="application/json",
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Missing signature"}
        assert StripeEvent.query.count() == 0

    def test_invalid_signature_returns_400(self, client, sign_payload):
        payload = _payload()
        resp = client.post(
            "/api/stripe/webhook",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload, "whsec_wrong")},
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid signature"}
        assert StripeEvent.query.count() == 0

    def test_garbage_header_returns_400(self, client):
        resp = client.post(
            "/api/stripe/webhook",
            data=_payload(),
            content_type="application/json",
            headers={"Stripe-Signature": "bad_sig"},
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid signature"}

    def test_invalid_payload_returns_400(self, client, sign_payload):
        payload = "[1, 2, 3]"
        resp = client.post(
            "/api/stripe/webhook",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload)},
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid payload"}

    def test_no_secret_configured_returns_500(self, app, client, sign_payload, monkeypatch):
        monkeypatch.setitem(app.config, "STRIPE_WEBHOOK_SECRETS", [])
        payload = _payload()
        resp = client.post(
            "/api/stripe/webhook",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload)},
        )
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Webhook secret not configured"}

    def test_get_not_allowed(self, client):
        resp = client.get("/api/stripe/webhook")
        assert resp.status_code == 405

    def test_valid_signature_records_event(self, client, gateway, sign_payload):
        payload = _payload(event_id="evt_sig_ok")
        resp = client.post(
            "/api/stripe/webhook",
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": sign_payload(payload, "whsec_live_fake")},
        )
        assert resp.status_code == 200
        assert resp.get_json() == {"received": True}
        assert db.session.query(StripeEvent).filter_by(
            stripe_event_id="evt_sig_ok"
        ).count() == 1
