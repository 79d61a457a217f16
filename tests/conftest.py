"""Shared test fixtures for the Stripe reconciliation test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake Stripe secrets)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- gateway: MagicMock standing in for the Stripe API gateway
- profile: a storefront profile linked to Stripe customer cus_test_123
- send_event: builds, signs and POSTs a Stripe event to the webhook endpoint
- sign_payload, make_event: the signing and envelope helpers
"""

import hashlib
import hmac
import json
import time
import uuid
from unittest.mock import MagicMock

import pytest

from reconciler import create_app
from reconciler.extensions import db as _db
from reconciler.models.profile import Profile

WEBHOOK_URL = "/api/stripe/webhook"
TEST_SECRET = "whsec_test_fake"


def _sign_payload(payload, secret=TEST_SECRET, timestamp=None):
    """Build a Stripe-Signature header the way Stripe computes it."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def _make_event(event_type, obj, event_id=None):
    """Wrap a data object in a Stripe event envelope."""
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:24]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def gateway(app, monkeypatch):
    """Replace the registered Stripe gateway with a MagicMock.

    Defaults keep handlers off the network: no line items, and a named
    product for email template data.
    """
    mock = MagicMock()
    mock.list_line_items.return_value = []
    mock.retrieve_product.return_value = {"id": "prod_club", "name": "Longevity Club"}
    monkeypatch.setitem(app.extensions, "stripe_gateway", mock)
    return mock


@pytest.fixture
def profile(db_session):
    """A profile already linked to a Stripe customer."""
    profile = Profile(
        email="jane@example.com",
        full_name="Jane Doe",
        stripe_customer_id="cus_test_123",
        referral_code="JANE1234",
    )
    _db.session.add(profile)
    _db.session.commit()
    return profile


@pytest.fixture
def send_event(client, gateway):
    """POST a signed event. Returns (response, event dict)."""

    def _send(event_type, obj, event_id=None, secret=TEST_SECRET):
        event = _make_event(event_type, obj, event_id=event_id)
        payload = json.dumps(event)
        resp = client.post(
            WEBHOOK_URL,
            data=payload,
            content_type="application/json",
            headers={"Stripe-Signature": _sign_payload(payload, secret)},
        )
        return resp, event

    return _send


@pytest.fixture
def sign_payload():
    """The signing helper, for tests that build their own requests."""
    return _sign_payload


@pytest.fixture
def make_event():
    """The event envelope helper."""
    return _make_event
