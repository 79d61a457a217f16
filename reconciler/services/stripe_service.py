"""Stripe service: signature verification and read-only Stripe API access.

Responsible for:
- Verifying webhook signatures against every configured signing secret
- Retrieving the Stripe objects a webhook payload leaves out
  (full subscriptions, payment intents, checkout line items, products)

Nothing here writes to the database.
"""

import logging

import stripe

from reconciler.services.stripe_objects import InboundEvent

logger = logging.getLogger(__name__)


def _to_dict(obj):
    """Return a plain dict for a Stripe API response."""
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


# ──────────────────────────────────────────────
# Webhook Signatures
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header, secrets,
                             tolerance=stripe.Webhook.DEFAULT_TOLERANCE):
    """Verify a Stripe-Signature header against each candidate secret in order.

    `payload` must be the exact raw request body: the signature is an
    HMAC over those bytes, so any re-serialization breaks it.

    Returns the decoded InboundEvent for the first secret that verifies,
    or None if the header is missing or no secret verifies.
    Raises ValueError if the body verifies but is not a valid event.
    """
    if not sig_header:
        return None

    for index, secret in enumerate(secrets):
        try:
            stripe.WebhookSignature.verify_header(
                payload, sig_header, secret, tolerance
            )
        except stripe.SignatureVerificationError:
            continue
        logger.debug(f"Webhook signature verified with secret #{index}")
        return InboundEvent.from_json(payload)

    return None


# ──────────────────────────────────────────────
# Read-only API access
# ──────────────────────────────────────────────

class StripeGateway:
    """Read-only access to Stripe, bound to one secret key.

    Registered as an app extension so handlers receive it explicitly
    instead of reaching for a process-wide client.
    """

    def __init__(self, api_key=None):
        self.api_key = api_key

    def init_app(self, app):
        self.api_key = app.config.get("STRIPE_SECRET_KEY")
        app.extensions["stripe_gateway"] = self

    def retrieve_subscription(self, subscription_id):
        return _to_dict(
            stripe.Subscription.retrieve(subscription_id, api_key=self.api_key)
        )

    def retrieve_payment_intent(self, payment_intent_id):
        return _to_dict(
            stripe.PaymentIntent.retrieve(payment_intent_id, api_key=self.api_key)
        )

    def retrieve_product(self, product_id):
        return _to_dict(
            stripe.Product.retrieve(product_id, api_key=self.api_key)
        )

    def list_line_items(self, session_id):
        """Return the line items of a checkout session as a list of dicts."""
        line_items = stripe.checkout.Session.list_line_items(
            session_id, limit=100, api_key=self.api_key
        )
        return _to_dict(line_items).get("data") or []
