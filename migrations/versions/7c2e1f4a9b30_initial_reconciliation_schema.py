"""Initial reconciliation schema

Revision ID: 7c2e1f4a9b30
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '7c2e1f4a9b30'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True)


def upgrade():
    op.create_table('profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('subscription_status', sa.String(length=50), nullable=True),
        sa.Column('current_plan', sa.String(length=255), nullable=True),
        sa.Column('partnership_tier', sa.String(length=50), nullable=True),
        sa.Column('referral_code', sa.String(length=20), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('stripe_customer_id'),
        sa.UniqueConstraint('referral_code')
    )
    op.create_table('orders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stripe_session_id', sa.String(length=255), nullable=False),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('amount_total', sa.Integer(), nullable=True),
        sa.Column('amount_subtotal', sa.Integer(), nullable=True),
        sa.Column('amount_refunded', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('currency', sa.String(length=10), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('payment_status', sa.String(length=50), nullable=True),
        sa.Column('payment_method_type', sa.String(length=50), nullable=True),
        sa.Column('fulfillment_status', sa.String(length=50), nullable=False),
        sa.Column('shipping_name', sa.String(length=255), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_session_id')
    )
    op.create_index('ix_orders_stripe_payment_intent_id', 'orders', ['stripe_payment_intent_id'])
    op.create_table('subscriptions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('stripe_subscription_id', sa.String(length=255), nullable=False),
        sa.Column('stripe_customer_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_price_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_product_id', sa.String(length=255), nullable=True),
        sa.Column('tier_key', sa.String(length=100), nullable=True),
        sa.Column('size_key', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=True),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_subscription_id')
    )
    op.create_index('ix_subscriptions_user_id_status', 'subscriptions', ['user_id', 'status'])
    op.create_table('purchases',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('stripe_payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('stripe_price_id', sa.String(length=255), nullable=False),
        sa.Column('stripe_product_id', sa.String(length=255), nullable=False),
        sa.Column('size_key', sa.String(length=100), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_payment_intent_id')
    )
    op.create_table('product_variants',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stripe_price_id', sa.String(length=255), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=True),
        sa.Column('track_inventory', sa.Boolean(), nullable=False),
        sa.Column('stock_quantity', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_price_id')
    )
    op.create_table('inventory_reservations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('variant_id', sa.String(length=36), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('checkout_session_id', sa.String(length=255), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_inventory_reservations_checkout_session_id', 'inventory_reservations', ['checkout_session_id'])
    op.create_table('inventory_transactions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('variant_id', sa.String(length=36), nullable=False),
        sa.Column('quantity_change', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=50), nullable=False),
        sa.Column('order_id', sa.String(length=36), nullable=True),
        sa.Column('checkout_session_id', sa.String(length=255), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['variant_id'], ['product_variants.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('variant_id', 'checkout_session_id', 'reason', name='uq_inventory_transactions_variant_session_reason')
    )
    op.create_table('stripe_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=255), nullable=False),
        _timestamp('first_seen_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('stripe_event_id')
    )
    op.create_table('webhook_failures',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('stripe_event_id', sa.String(length=255), nullable=False),
        sa.Column('event_type', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=False),
        _timestamp('recorded_at'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_webhook_failures_stripe_event_id', 'webhook_failures', ['stripe_event_id'])
    op.create_table('email_queue',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email_type', sa.String(length=100), nullable=False),
        sa.Column('to_email', sa.String(length=255), nullable=False),
        sa.Column('template_data', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('sent', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('retry_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('error_message', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_email_queue_sent_created_at', 'email_queue', ['sent', 'created_at'])
    op.create_table('referrals',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('referrer_id', sa.String(length=36), nullable=False),
        sa.Column('referral_code', sa.String(length=20), nullable=False),
        sa.Column('referred_user_id', sa.String(length=36), nullable=True),
        sa.Column('completed_purchase', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['referred_user_id'], ['profiles.id'], ),
        sa.ForeignKeyConstraint(['referrer_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referral_code')
    )
    op.create_table('discounts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('redemption_count', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('max_redemptions', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_table('audit_events',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('actor_user_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['actor_user_id'], ['profiles.id'], ),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('discounts')
    op.drop_table('referrals')
    op.drop_index('ix_email_queue_sent_created_at', table_name='email_queue')
    op.drop_table('email_queue')
    op.drop_index('ix_webhook_failures_stripe_event_id', table_name='webhook_failures')
    op.drop_table('webhook_failures')
    op.drop_table('stripe_events')
    op.drop_table('inventory_transactions')
    op.drop_index('ix_inventory_reservations_checkout_session_id', table_name='inventory_reservations')
    op.drop_table('inventory_reservations')
    op.drop_table('product_variants')
    op.drop_table('purchases')
    op.drop_index('ix_subscriptions_user_id_status', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_orders_stripe_payment_intent_id', table_name='orders')
    op.drop_table('orders')
    op.drop_table('profiles')
