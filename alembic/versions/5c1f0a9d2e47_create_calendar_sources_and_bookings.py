"""create calendar sources and bookings

Revision ID: 5c1f0a9d2e47
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5c1f0a9d2e47'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    # 1. External iCal feeds
    op.create_table(
        'calendar_sources',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('feed_url', sa.Text, nullable=False),
        sa.Column('color_tag', sa.String(20), server_default='#3b82f6', nullable=True),
        sa.Column('enabled', sa.Boolean, server_default=sa.true(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_status', sa.String(20), nullable=True),
        sa.Column('last_sync_error', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True)
    )

    # 2. Booking ledger
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('booking_reference', sa.String(40), nullable=False, unique=True),
        sa.Column('channel', sa.String(50), server_default='direct', nullable=False),
        sa.Column('external_reference', sa.String(100), nullable=True),
        sa.Column('visitor_name', sa.String(200), nullable=True),
        sa.Column('visitor_email', sa.String(200), nullable=True),
        sa.Column('visitor_phone', sa.String(50), nullable=True),
        sa.Column('tour_type', sa.String(100), nullable=True),
        sa.Column('visit_date', sa.Date, nullable=False),
        sa.Column('visit_time', sa.Time, nullable=False),
        sa.Column('duration_minutes', sa.Integer, nullable=True),
        sa.Column('check_out_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('number_of_people', sa.Integer, server_default='1', nullable=False),
        sa.Column('total_amount', sa.Integer, nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('channel', 'external_reference', name='uq_bookings_channel_external_reference')
    )

    # Indexes for bookings
    op.create_index('ix_bookings_visit_date_status', 'bookings', ['visit_date', 'status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_bookings_visit_date_status', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('calendar_sources')
