"""
Email queue service.

Webhook handlers never deliver mail. They append a row to email_queue and a
separate consumer renders and sends it, so a slow or failing mail provider
can never hold up or fail a webhook response.

Usage:
    from reconciler.services.email_service import queue_email

    queue_email(
        "order_confirmation",
        to_email="user@example.com",
        template_data={"orderNumber": "AB12CD34"},
        user_id=profile.id,
    )
"""

import logging

from reconciler.extensions import db
from reconciler.models.email_queue import EmailQueue

logger = logging.getLogger(__name__)


def queue_email(email_type, to_email, template_data=None, user_id=None):
    """
    Append an email to the outbound queue.

    Runs inside a savepoint: if the insert fails, only the queue row is
    rolled back and the caller's transaction carries on.

    Returns the EmailQueue row, or None if queueing failed.
    """
    if not to_email:
        logger.warning(f"Email {email_type} not queued: no recipient")
        return None

    try:
        with db.session.begin_nested():
            email = EmailQueue(
                email_type=email_type,
                to_email=to_email,
                template_data=template_data or {},
                user_id=user_id,
            )
            db.session.add(email)
        logger.info(f"Queued {email_type} email to {to_email}")
        return email
    except Exception as e:
        # Never let email failure break webhook processing
        logger.error(f"Failed to queue {email_type} email to {to_email}: {e}")
        return None
