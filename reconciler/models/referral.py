"""Referral and discount models."""

import uuid

from reconciler.extensions import db


class Referral(db.Model):
    __tablename__ = "referrals"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    referrer_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=False
    )
    referral_code = db.Column(db.String(20), unique=True, nullable=False)
    referred_user_id = db.Column(
        db.String(36), db.ForeignKey("profiles.id"), nullable=True
    )
    completed_purchase = db.Column(db.Boolean, default=False, nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<Referral {self.referral_code} completed={self.completed_purchase}>"


class Discount(db.Model):
    __tablename__ = "discounts"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    code = db.Column(db.String(50), unique=True, nullable=False)
    redemption_count = db.Column(db.Integer, default=0, nullable=False)
    max_redemptions = db.Column(db.Integer, nullable=True)  # None = unlimited
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<Discount {self.code} ({self.redemption_count})>"
