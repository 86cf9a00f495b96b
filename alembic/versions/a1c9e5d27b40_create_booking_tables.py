"""create booking tables

Revision ID: a1c9e5d27b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1c9e5d27b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('providers',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('roles_supported', postgresql.ARRAY(sa.String(length=100)), nullable=False, server_default='{}'),
    sa.Column('difficulty_levels', postgresql.ARRAY(sa.String(length=100)), nullable=False, server_default='{}'),
    sa.Column('interview_types', postgresql.ARRAY(sa.String(length=100)), nullable=False, server_default='{}'),
    sa.Column('session_kinds_offered', postgresql.ARRAY(sa.String(length=100)), nullable=False, server_default='{}'),
    sa.Column('years_of_experience', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_providers_status', 'providers', ['status'], unique=False)

    op.create_table('consumer_profiles',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('display_name', sa.String(length=200), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=True),
    sa.Column('plan_type', sa.String(length=20), nullable=False, server_default='base'),
    sa.Column('interviews_used', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('interviews_limit', sa.Integer(), nullable=False, server_default='5'),
    sa.Column('guidance_used', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('guidance_limit', sa.Integer(), nullable=False, server_default='5'),
    sa.Column('plan_expires_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('interviews_used >= 0 AND guidance_used >= 0', name='usage_non_negative'),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('availability_windows',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('provider_id', sa.Integer(), nullable=False),
    sa.Column('start_time', sa.DateTime(), nullable=False),
    sa.Column('end_time', sa.DateTime(), nullable=False),
    sa.Column('is_booked', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('start_time < end_time', name='window_start_before_end'),
    sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_windows_provider_free_start', 'availability_windows', ['provider_id', 'is_booked', 'start_time'], unique=False)

    op.create_table('bookings',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('consumer_id', sa.Integer(), nullable=False),
    sa.Column('provider_id', sa.Integer(), nullable=True),
    sa.Column('window_id', sa.Integer(), nullable=True),
    sa.Column('session_kind', sa.String(length=20), nullable=False),
    sa.Column('topic', sa.Text(), nullable=True),
    sa.Column('role', sa.String(length=100), nullable=True),
    sa.Column('difficulty', sa.String(length=20), nullable=True),
    sa.Column('interview_type', sa.String(length=30), nullable=True),
    sa.Column('scheduled_start', sa.DateTime(), nullable=False),
    sa.Column('duration_minutes', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='scheduled'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['consumer_id'], ['consumer_profiles.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['provider_id'], ['providers.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['window_id'], ['availability_windows.id'], ondelete='SET NULL'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_bookings_provider_status_start', 'bookings', ['provider_id', 'status', 'scheduled_start'], unique=False)
    op.create_index('idx_bookings_consumer', 'bookings', ['consumer_id'], unique=False)

    op.create_table('subscriptions',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('consumer_id', sa.Integer(), nullable=False),
    sa.Column('reference', sa.String(length=100), nullable=False),
    sa.Column('plan_type', sa.String(length=20), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('valid_from', sa.DateTime(), nullable=False),
    sa.Column('valid_until', sa.DateTime(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['consumer_id'], ['consumer_profiles.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('reference')
    )
    op.create_index('ix_subscriptions_consumer_id', 'subscriptions', ['consumer_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_subscriptions_consumer_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('idx_bookings_consumer', table_name='bookings')
    op.drop_index('idx_bookings_provider_status_start', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('idx_windows_provider_free_start', table_name='availability_windows')
    op.drop_table('availability_windows')
    op.drop_table('consumer_profiles')
    op.drop_index('idx_providers_status', table_name='providers')
    op.drop_table('providers')
