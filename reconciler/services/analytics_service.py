"""Server-side analytics events.

Events are logged and persisted as AuditEvent rows. Disabled entirely when
ANALYTICS_ENABLED is off.
"""

import logging

from flask import current_app

from reconciler.extensions import db
from reconciler.models.audit import AuditEvent

logger = logging.getLogger(__name__)


def track_server_event(event, properties=None):
    """Record a named analytics event. Never raises."""
    if not current_app.config.get("ANALYTICS_ENABLED"):
        return

    properties = properties or {}
    logger.info(f"[Analytics] {event} {properties}")

    try:
        with db.session.begin_nested():
            db.session.add(AuditEvent(
                actor_user_id=properties.get("userId"),
                action=event,
                metadata_=properties,
            ))
    except Exception as e:
        logger.error(f"Failed to record analytics event {event}: {e}")
