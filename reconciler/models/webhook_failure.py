"""Webhook failure model.

When processing a verified event raises, the full decoded event and the
error are stored here for manual replay (`flask replay-webhook-failure`).
Append-only: rows are never updated and never replayed automatically.
"""

import uuid

from reconciler.extensions import db


class WebhookFailure(db.Model):
    __tablename__ = "webhook_failures"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_event_id = db.Column(db.String(255), nullable=False, index=True)
    event_type = db.Column(db.String(255), nullable=False)
    payload = db.Column(db.JSON, nullable=False)
    error_message = db.Column(db.Text, nullable=False)
    recorded_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<WebhookFailure {self.stripe_event_id} ({self.event_type})>"
