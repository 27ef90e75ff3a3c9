"""Create pickup, billing and commission schema

Revision ID: 001_jelantah
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_jelantah'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    """Create users, settings, pickups, bills, commissions and notifications"""

    # ====================
    # USERS TABLE
    # ====================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('role', sa.String(20), server_default='CUSTOMER', nullable=False),
        sa.Column('referral_code', sa.String(30), unique=True, nullable=True),
        sa.Column('referred_by_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    # ====================
    # SETTINGS TABLE (single row)
    # ====================
    op.create_table(
        'settings',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('price_tier1_min', sa.Numeric(10, 2), server_default='1', nullable=False),
        sa.Column('price_tier1_max', sa.Numeric(10, 2), server_default='99', nullable=False),
        sa.Column('price_tier1_rate', sa.Numeric(14, 2), server_default='6500', nullable=False),
        sa.Column('price_tier2_min', sa.Numeric(10, 2), server_default='100', nullable=False),
        sa.Column('price_tier2_max', sa.Numeric(10, 2), server_default='199', nullable=False),
        sa.Column('price_tier2_rate', sa.Numeric(14, 2), server_default='7000', nullable=False),
        sa.Column('price_tier3_min', sa.Numeric(10, 2), server_default='200', nullable=False),
        sa.Column('price_tier3_rate', sa.Numeric(14, 2), server_default='7500', nullable=False),
        sa.Column('courier_commission_per_liter', sa.Numeric(14, 2), server_default='500', nullable=False),
        sa.Column('courier_daily_salary', sa.Numeric(14, 2), server_default='100000', nullable=False),
        sa.Column('affiliate_commission_per_liter', sa.Numeric(14, 2), server_default='200', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    # ====================
    # PICKUPS TABLE
    # ====================
    op.create_table(
        'pickups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('customer_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('courier_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('warehouse_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('scheduled_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('actual_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('volume', sa.Numeric(10, 2), nullable=False),
        sa.Column('actual_volume', sa.Numeric(10, 2), nullable=True),
        sa.Column('estimated_price_per_liter', sa.Numeric(14, 2), server_default='0'),
        sa.Column('estimated_total_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('estimated_courier_fee', sa.Numeric(14, 2), server_default='0'),
        sa.Column('estimated_affiliate_fee', sa.Numeric(14, 2), server_default='0'),
        sa.Column('price_per_liter', sa.Numeric(14, 2), server_default='0'),
        sa.Column('total_price', sa.Numeric(14, 2), server_default='0'),
        sa.Column('courier_fee', sa.Numeric(14, 2), server_default='0'),
        sa.Column('affiliate_fee', sa.Numeric(14, 2), server_default='0'),
        sa.Column('photo_proof', sa.String(500), nullable=True),
        sa.Column('bank_name', sa.String(100), nullable=True),
        sa.Column('account_name', sa.String(200), nullable=True),
        sa.Column('account_number', sa.String(50), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_pickups_customer_id', 'pickups', ['customer_id'])
    op.create_index('ix_pickups_courier_id', 'pickups', ['courier_id'])
    op.create_index('ix_pickups_status', 'pickups', ['status'])
    op.create_index('ix_pickups_status_courier', 'pickups', ['status', 'courier_id'])

    # ====================
    # BILLS TABLE
    # ====================
    op.create_table(
        'bills',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pickup_id', sa.Uuid(), sa.ForeignKey('pickups.id', ondelete='RESTRICT'), unique=True, nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('invoice_number', sa.String(50), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(20), server_default='UNPAID', nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_proof', sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_bills_invoice_number', 'bills', ['invoice_number'], unique=True)
    op.create_index('ix_bills_user_id', 'bills', ['user_id'])
    op.create_index('ix_bills_status', 'bills', ['status'])

    # ====================
    # COMMISSIONS TABLE
    # ====================
    op.create_table(
        'commissions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pickup_id', sa.Uuid(), sa.ForeignKey('pickups.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('commission_type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(20), server_default='PENDING', nullable=False),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_proof', sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('pickup_id', 'commission_type', name='uq_commission_pickup_type'),
    )
    op.create_index('ix_commissions_pickup_id', 'commissions', ['pickup_id'])
    op.create_index('ix_commissions_user_id', 'commissions', ['user_id'])
    op.create_index('ix_commissions_commission_type', 'commissions', ['commission_type'])
    op.create_index('ix_commissions_status', 'commissions', ['status'])

    # ====================
    # NOTIFICATIONS TABLE
    # ====================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notification_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('related_id', sa.Uuid(), nullable=True),
        sa.Column('is_read', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'])


def downgrade():
    """Drop all tables"""
    op.drop_table('notifications')
    op.drop_table('commissions')
    op.drop_table('bills')
    op.drop_table('pickups')
    op.drop_table('settings')
    op.drop_table('users')
