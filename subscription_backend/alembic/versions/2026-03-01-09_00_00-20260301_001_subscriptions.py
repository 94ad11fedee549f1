"""Add subscription and payment ledger tables

Revision ID: 20260301_001_subscriptions
Revises:
Create Date: 2026-03-01 09:00:00.000000

This migration adds the recurring billing tables:
- subscriptions: One subscription per subscriber with plan/discount/affiliate snapshots
- subscription_payments: Append-only ledger of captured charges
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20260301_001_subscriptions'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscription tables."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = inspector.get_table_names()

    # -------------------------------------------------------------------------
    # 1. subscriptions
    # -------------------------------------------------------------------------
    if 'subscriptions' not in existing_tables:
        op.create_table(
            'subscriptions',
            sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),

            # Subscriber
            sa.Column('subscriber_id', sa.String(length=255), nullable=False, unique=True, comment='Owning account ID'),
            sa.Column('subscriber_email', sa.String(length=255), nullable=True),
            sa.Column('user_count', sa.Integer(), server_default='0', nullable=False, comment='Users on the account'),

            # Plan and pricing (snapshots of the values in effect)
            sa.Column('plan', postgresql.JSONB(), nullable=False, comment='Plan snapshot'),
            sa.Column('discount', postgresql.JSONB(), nullable=True, comment='Account discount snapshot'),
            sa.Column('affiliate', postgresql.JSONB(), nullable=True, comment='Referring affiliate snapshot'),
            sa.Column('amount', sa.DECIMAL(precision=10, scale=2), server_default='0.00', nullable=False, comment='Amount per renewal period'),
            sa.Column('amount_overridden', sa.Boolean(), server_default=sa.text('false'), nullable=False, comment='Amount set explicitly'),
            sa.Column('user_limit', sa.Integer(), nullable=True, comment='NULL = unlimited'),

            # Lifecycle
            sa.Column('state', sa.String(length=20), server_default='trial', nullable=False, comment='trial, active'),
            sa.Column('next_renewal_at', sa.TIMESTAMP(timezone=True), nullable=True, comment='When the next charge is due'),

            # Card on file
            sa.Column('card_number', sa.String(length=32), nullable=True, comment='Masked card number'),
            sa.Column('card_expiration', sa.String(length=7), nullable=True, comment='MM-YYYY'),
            sa.Column('billing_id', sa.String(length=255), nullable=True, comment='Card vault reference'),

            # Timestamps
            sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),

            sa.PrimaryKeyConstraint('id'),
            sa.CheckConstraint('amount >= 0', name='ck_subscriptions_amount_non_negative'),
            sa.CheckConstraint("state IN ('trial', 'active')", name='ck_subscriptions_state'),
        )
        op.create_index('idx_subscriptions_state_renewal', 'subscriptions', ['state', 'next_renewal_at'])
        op.create_index('idx_subscriptions_billing_id', 'subscriptions', ['billing_id'])

    # -------------------------------------------------------------------------
    # 2. subscription_payments - ledger
    # -------------------------------------------------------------------------
    if 'subscription_payments' not in existing_tables:
        op.create_table(
            'subscription_payments',
            sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
            sa.Column('subscription_id', postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column('subscriber_id', sa.String(length=255), nullable=False),
            sa.Column('amount', sa.DECIMAL(precision=10, scale=2), nullable=False, comment='Amount captured'),
            sa.Column('setup', sa.Boolean(), server_default=sa.text('false'), nullable=False, comment='Setup fee charge'),
            sa.Column('transaction_id', sa.String(length=255), nullable=True, comment='Gateway authorization'),
            sa.Column('affiliate', sa.String(length=255), nullable=True, comment='Affiliate token'),
            sa.Column('affiliate_amount', sa.DECIMAL(precision=10, scale=2), nullable=True, comment='Affiliate commission'),
            sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('idx_subscription_payments_subscription_id', 'subscription_payments', ['subscription_id'])
        op.create_index('idx_subscription_payments_transaction_id', 'subscription_payments', ['transaction_id'])
        op.create_index('idx_subscription_payments_affiliate', 'subscription_payments', ['affiliate'])


def downgrade() -> None:
    """Drop subscription tables in reverse order."""
    op.drop_table('subscription_payments')
    op.drop_table('subscriptions')
