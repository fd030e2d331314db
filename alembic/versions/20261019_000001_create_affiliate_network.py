"""Create affiliate network schema.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create affiliates, ledger, payouts, config and storefront tables."""

    # Storefront tables read by the engine
    op.create_table(
        'products',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('product_cost', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('packaging_cost', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('other_charges', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('affiliate_pool_percent', sa.DECIMAL(5, 2), nullable=True, comment='NULL means default pool percent'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('coupon_code', sa.String(32), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='Pending Verification'),
        sa.Column('total_amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_orders_order_id', 'orders', ['order_id'], unique=True)
    op.create_index('ix_orders_coupon_code', 'orders', ['coupon_code'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    # Affiliates with binary tree placement
    op.create_table(
        'affiliates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('mobile', sa.String(20), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('upi_id', sa.String(255), nullable=True),
        sa.Column('coupon_code', sa.String(32), nullable=True),
        sa.Column('referrer_id', sa.Integer(), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.String(5), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending', comment='Pending, PendingPayment, Approved, Rejected'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('orders_since_paid', sa.Integer(), nullable=False, server_default='0', comment='Reset at paid-tier activation, drives tier progression'),
        sa.Column('total_sales_amount', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('direct_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('level1_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('level2_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('level3_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('total_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('bonus_earnings', sa.DECIMAL(18, 8), nullable=False, server_default='0', comment='Referral bonuses, kept outside total_earnings'),
        sa.Column('pending_balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('available_balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('paid_balance', sa.DECIMAL(18, 8), nullable=False, server_default='0'),
        sa.Column('current_tier', sa.String(20), nullable=False, server_default='Newbie'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['referrer_id'], ['affiliates.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['parent_id'], ['affiliates.id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('parent_id', 'position', name='uq_affiliates_parent_position'),
        sa.UniqueConstraint('mobile', name='affiliates_mobile_key'),
        sa.UniqueConstraint('coupon_code', name='affiliates_coupon_code_key'),
        sa.CheckConstraint('parent_id IS NULL OR parent_id != id', name='check_affiliate_not_own_parent'),
        sa.CheckConstraint("position IS NULL OR position IN ('left', 'right')", name='check_affiliate_position_valid'),
        sa.CheckConstraint('pending_balance >= 0', name='check_affiliate_pending_balance_non_negative'),
        sa.CheckConstraint('available_balance >= 0', name='check_affiliate_available_balance_non_negative'),
        sa.CheckConstraint('paid_balance >= 0', name='check_affiliate_paid_balance_non_negative'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_affiliates_coupon_code', 'affiliates', ['coupon_code'])
    op.create_index('ix_affiliates_referrer_id', 'affiliates', ['referrer_id'])
    op.create_index('ix_affiliates_parent_id', 'affiliates', ['parent_id'])
    op.create_index('ix_affiliates_status', 'affiliates', ['status'])

    # Commission ledger
    op.create_table(
        'affiliate_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('from_affiliate_id', sa.Integer(), nullable=True),
        sa.Column('order_id', sa.String(64), nullable=True),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('type', sa.String(10), nullable=False, comment='direct, level1, level2, level3, bonus'),
        sa.Column('status', sa.String(20), nullable=False, server_default='Completed'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['from_affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('order_id', 'affiliate_id', name='uq_affiliate_tx_order_recipient'),
        sa.CheckConstraint('amount > 0', name='check_affiliate_tx_amount_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_affiliate_transactions_affiliate_id', 'affiliate_transactions', ['affiliate_id'])
    op.create_index('ix_affiliate_transactions_from_affiliate_id', 'affiliate_transactions', ['from_affiliate_id'])
    op.create_index('ix_affiliate_transactions_order_id', 'affiliate_transactions', ['order_id'])
    op.create_index('ix_affiliate_transactions_type', 'affiliate_transactions', ['type'])

    # Payout requests
    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.DECIMAL(18, 8), nullable=False),
        sa.Column('upi_id', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending', comment='Pending, Approved, Rejected'),
        sa.Column('admin_note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id'], ondelete='CASCADE'),
        sa.CheckConstraint('amount > 0', name='check_payout_amount_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_payout_requests_affiliate_id', 'payout_requests', ['affiliate_id'])
    op.create_index('ix_payout_requests_status', 'payout_requests', ['status'])

    # Single-row split configuration
    op.create_table(
        'affiliate_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('level1_split', sa.DECIMAL(5, 2), nullable=False, server_default='20'),
        sa.Column('level2_split', sa.DECIMAL(5, 2), nullable=False, server_default='18'),
        sa.Column('level3_split', sa.DECIMAL(5, 2), nullable=False, server_default='12'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.execute(
        "INSERT INTO affiliate_config (id, level1_split, level2_split, level3_split) "
        "VALUES (1, 20, 18, 12)"
    )


def downgrade() -> None:
    """Drop affiliate network schema."""

    op.drop_table('affiliate_config')

    op.drop_index('ix_payout_requests_status', 'payout_requests')
    op.drop_index('ix_payout_requests_affiliate_id', 'payout_requests')
    op.drop_table('payout_requests')

    op.drop_index('ix_affiliate_transactions_type', 'affiliate_transactions')
    op.drop_index('ix_affiliate_transactions_order_id', 'affiliate_transactions')
    op.drop_index('ix_affiliate_transactions_from_affiliate_id', 'affiliate_transactions')
    op.drop_index('ix_affiliate_transactions_affiliate_id', 'affiliate_transactions')
    op.drop_table('affiliate_transactions')

    op.drop_index('ix_affiliates_status', 'affiliates')
    op.drop_index('ix_affiliates_parent_id', 'affiliates')
    op.drop_index('ix_affiliates_referrer_id', 'affiliates')
    op.drop_index('ix_affiliates_coupon_code', 'affiliates')
    op.drop_table('affiliates')

    op.drop_index('ix_orders_status', 'orders')
    op.drop_index('ix_orders_coupon_code', 'orders')
    op.drop_index('ix_orders_order_id', 'orders')
    op.drop_table('orders')

    op.drop_table('products')
