"""Pin settings to a single row and add pickup messages

Revision ID: 002_jelantah
Revises: 001_jelantah
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '002_jelantah'
down_revision = '001_jelantah'
branch_labels = None
depends_on = None


def upgrade():
    """Keep the oldest settings row as id 1, then create the messages table"""

    # ====================
    # SETTINGS SINGLETON
    # ====================
    op.execute("DELETE FROM settings WHERE id <> (SELECT MIN(id) FROM settings)")
    op.execute("UPDATE settings SET id = 1")

    with op.batch_alter_table('settings', schema=None) as batch_op:
        batch_op.create_check_constraint('ck_settings_singleton', 'id = 1')

    # ====================
    # MESSAGES TABLE
    # ====================
    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('pickup_id', sa.Uuid(), sa.ForeignKey('pickups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sender_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receiver_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('is_read', sa.Boolean, server_default=sa.false(), nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_messages_receiver_id', 'messages', ['receiver_id'])
    op.create_index('ix_messages_pickup_created', 'messages', ['pickup_id', 'created_at'])


def downgrade():
    """Drop messages and the settings check constraint"""
    op.drop_table('messages')

    with op.batch_alter_table('settings', schema=None) as batch_op:
        batch_op.drop_constraint('ck_settings_singleton', type_='check')
