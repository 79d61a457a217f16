"""Webhooks blueprint: /api/stripe/webhook

Receives Stripe webhook events.
Raw body is required for signature verification.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from reconciler.services.stripe_service import verify_webhook_signature
from reconciler.services.webhook_service import WebhookOutcome, process_webhook_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/stripe")


@webhooks_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature against each configured webhook secret
    3. Pass to process_webhook_event (idempotent via stripe_events table)
    4. Return 200 to acknowledge receipt, 500 to ask Stripe to redeliver
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        return jsonify({"error": "Missing signature"}), 400

    secrets = current_app.config.get("STRIPE_WEBHOOK_SECRETS") or []
    if not secrets:
        logger.error("No Stripe webhook secret is configured")
        return jsonify({"error": "Webhook secret not configured"}), 500

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(payload, sig_header, secrets)
    except ValueError as e:
        logger.warning(f"Webhook payload rejected: {e}")
        return jsonify({"error": "Invalid payload"}), 400

    if event is None:
        logger.warning("Webhook signature verification failed for every configured secret")
        return jsonify({"error": "Invalid signature"}), 400

    # --- Process event (idempotent) ---
    gateway = current_app.extensions["stripe_gateway"]
    outcome = process_webhook_event(event, gateway)

    if outcome is WebhookOutcome.DUPLICATE:
        return jsonify({"received": True, "duplicate": True}), 200
    if outcome is WebhookOutcome.FAILED:
        return jsonify({"error": "Webhook handler failed"}), 500
    return jsonify({"received": True}), 200
