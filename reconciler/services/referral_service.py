"""Referral service: completion of pending referrals and discount redemption."""

import logging
from datetime import datetime, timezone

from flask import current_app

from reconciler.extensions import db
from reconciler.models.referral import Discount, Referral
from reconciler.services.analytics_service import track_server_event

logger = logging.getLogger(__name__)


def complete_referral(referred_user_id):
    """Mark the referral that brought this user in as completed.

    Only a referral that is still pending is touched, via a conditional
    update, so calling this again for a returning customer is a no-op.

    Returns True if a referral was completed by this call.
    """
    if not current_app.config.get("REFERRALS_ENABLED"):
        return False

    try:
        with db.session.begin_nested():
            referral = Referral.query.filter_by(
                referred_user_id=referred_user_id,
                completed_purchase=False,
            ).first()
            if not referral:
                return False

            updated = Referral.query.filter_by(
                id=referral.id, completed_purchase=False
            ).update(
                {
                    "completed_purchase": True,
                    "completed_at": datetime.now(timezone.utc),
                },
                synchronize_session="fetch",
            )
            if not updated:
                # Completed concurrently by another delivery
                return False
    except Exception as e:
        logger.error(f"Failed to complete referral for user {referred_user_id}: {e}")
        return False

    track_server_event("referral_completed", {
        "userId": referred_user_id,
        "referrerId": referral.referrer_id,
        "referralCode": referral.referral_code,
    })
    logger.info(f"Referral {referral.referral_code} completed by user {referred_user_id}")
    return True


def redeem_discount(discount_id):
    """Increment a discount's redemption counter so max_redemptions holds.

    Returns True on success. Failures are logged, never raised.
    """
    try:
        with db.session.begin_nested():
            updated = Discount.query.filter_by(id=discount_id).update(
                {"redemption_count": Discount.redemption_count + 1},
                synchronize_session="fetch",
            )
    except Exception as e:
        logger.error(f"Failed to increment discount redemption counter for {discount_id}: {e}")
        return False

    if not updated:
        logger.error(f"Discount {discount_id} not found, redemption not recorded")
        return False

    logger.info(f"Discount redemption recorded for {discount_id}")
    return True
