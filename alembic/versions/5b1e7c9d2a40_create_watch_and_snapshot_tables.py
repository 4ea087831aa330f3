"""create_watch_and_snapshot_tables

Revision ID: 5b1e7c9d2a40
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b1e7c9d2a40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'faredrop_watches',
        sa.Column('user_id', sa.String(length=255), primary_key=True),
        sa.Column('watch_id', sa.String(length=36), primary_key=True, unique=True),
        sa.Column('origin', sa.String(length=3), nullable=False),
        sa.Column('destination', sa.String(length=3), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('return_date', sa.Date(), nullable=True),
        sa.Column('price_threshold', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('last_price', sa.Float(), nullable=True),
        sa.Column('last_checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_alert_sent', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'ix_watch_active_updated',
        'faredrop_watches',
        ['is_active', 'updated_at'],
    )
    op.create_table(
        'faredrop_price_snapshots',
        sa.Column('watch_id', sa.String(length=36), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), primary_key=True),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('source', sa.String(length=32), nullable=False),
        sa.Column('airline', sa.String(length=16), nullable=True),
        sa.Column('flight_number', sa.String(length=16), nullable=True),
        sa.Column('duration', sa.String(length=32), nullable=True),
        sa.Column('stops', sa.Integer(), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        'ix_faredrop_price_snapshots_expires_at',
        'faredrop_price_snapshots',
        ['expires_at'],
    )


def downgrade():
    op.drop_index(
        'ix_faredrop_price_snapshots_expires_at',
        table_name='faredrop_price_snapshots',
    )
    op.drop_table('faredrop_price_snapshots')
    op.drop_index('ix_watch_active_updated', table_name='faredrop_watches')
    op.drop_table('faredrop_watches')
