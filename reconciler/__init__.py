import os
import logging

import click
from flask import Flask, jsonify

from reconciler.config import config_by_name
from reconciler.extensions import db, migrate, stripe_gateway


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    stripe_gateway.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from reconciler import models  # noqa: F401

    # --- Register blueprints ---
    from reconciler.blueprints.webhooks import webhooks_bp

    app.register_blueprint(webhooks_bp)

    # --- Error handlers ---
    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405

    # --- CLI commands ---
    register_cli(app)

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("list-webhook-failures")
    @click.option("--limit", default=20, show_default=True, help="Rows to show.")
    @click.option("--event-type", default=None, help="Only show this event type.")
    def list_webhook_failures(limit, event_type):
        """List recorded webhook failures, newest first.

        Usage:
            flask list-webhook-failures
            flask list-webhook-failures --event-type checkout.session.completed
        """
        from reconciler.models.webhook_failure import WebhookFailure

        query = WebhookFailure.query
        if event_type:
            query = query.filter_by(event_type=event_type)
        failures = (
            query.order_by(WebhookFailure.recorded_at.desc())
            .limit(limit)
            .all()
        )

        if not failures:
            click.echo("No webhook failures recorded.")
            return

        for failure in failures:
            recorded = failure.recorded_at.isoformat() if failure.recorded_at else "?"
            click.echo(
                f"{failure.id}  {recorded}  {failure.stripe_event_id}  "
                f"{failure.event_type}  {failure.error_message}"
            )

    @app.cli.command("replay-webhook-failure")
    @click.argument("failure_id")
    def replay_webhook_failure(failure_id):
        """Re-run a failed event through the full webhook pipeline.

        The idempotency ledger still applies: an event that has since been
        processed by a Stripe redelivery is reported as a duplicate. A
        replay that fails again appends a new failure record.

        Usage:
            flask replay-webhook-failure <failure-id>
        """
        from reconciler.models.webhook_failure import WebhookFailure
        from reconciler.services.stripe_objects import InboundEvent
        from reconciler.services.webhook_service import (
            WebhookOutcome,
            process_webhook_event,
        )

        failure = db.session.get(WebhookFailure, failure_id)
        if not failure:
            raise click.ClickException(f"No webhook failure with id {failure_id}")

        event = InboundEvent.from_payload(dict(failure.payload))
        outcome = process_webhook_event(event, app.extensions["stripe_gateway"])

        if outcome is WebhookOutcome.PROCESSED:
            click.echo(f"Replayed {event.id} ({event.type}): processed")
        elif outcome is WebhookOutcome.DUPLICATE:
            click.echo(f"Event {event.id} was already processed, nothing to replay")
        else:
            raise click.ClickException(
                f"Replay of {event.id} failed again, see the newest failure record"
            )
