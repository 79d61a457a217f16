"""Audit event model.

Persists server-side analytics events raised during reconciliation
(tier upgrades, completed purchases, referral completions).
"""

import uuid

from reconciler.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    actor_user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    action = db.Column(db.String(255), nullable=False)  # e.g. "tier_upgraded"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid Python builtin clash
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
