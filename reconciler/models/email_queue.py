"""Email queue model.

Outbound transactional emails are appended here by the webhook and drained
by a separate consumer that renders and delivers them. The webhook never
sends mail itself.
"""

import uuid

from reconciler.extensions import db


class EmailQueue(db.Model):
    __tablename__ = "email_queue"

    TYPES = [
        "order_confirmation",
        "subscription_confirmation",
        "subscription_canceled",
        "welcome_new_customer",
        "refund_confirmation",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email_type = db.Column(db.String(100), nullable=False)
    to_email = db.Column(db.String(255), nullable=False)
    template_data = db.Column(db.JSON, default=dict)
    user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    sent = db.Column(db.Boolean, default=False, nullable=False)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    retry_count = db.Column(db.Integer, default=0, nullable=False)
    error_message = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<EmailQueue {self.email_type} -> {self.to_email}>"
