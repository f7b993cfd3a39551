"""create booking tables

Revision ID: 4b1f0c2d9a10
Revises:
Create Date: 2026-10-19 10:12:41.503218

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4b1f0c2d9a10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_SLOT_WHERE = sa.text("status IN ('pending', 'confirmed')")


def upgrade() -> None:
    """Upgrade schema."""

    # 1. Businesses and their notification preferences
    op.create_table(
        'businesses',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('timezone', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('is_active', sa.Boolean(), nullable=True),
    )

    op.create_table(
        'business_notification_preferences',
        sa.Column('business_id', sa.Uuid(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('email', sa.Boolean(), nullable=False),
        sa.Column('whatsapp', sa.Boolean(), nullable=False),
        sa.Column('sms', sa.Boolean(), nullable=False),
        sa.Column('reminder_email', sa.Boolean(), nullable=False),
        sa.Column('reminder_whatsapp', sa.Boolean(), nullable=False),
        sa.Column('reminder_sms', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # 2. Services
    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('business_id', sa.Uuid(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('buffer_minutes', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_services_business_id', 'services', ['business_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    # 3. Availability rules
    op.create_table(
        'weekly_availability',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('business_id', sa.Uuid(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.UniqueConstraint('business_id', 'day_of_week', name='uq_weekly_availability_day'),
    )

    op.create_table(
        'availability_exceptions',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('business_id', sa.Uuid(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.String(10), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=True),
        sa.Column('end_time', sa.String(5), nullable=True),
        sa.Column('reason', sa.String(), nullable=True),
        sa.UniqueConstraint('business_id', 'date', name='uq_availability_exception_date'),
    )

    # 4. Appointments
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('business_id', sa.Uuid(as_uuid=True), sa.ForeignKey('businesses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.Uuid(as_uuid=True), sa.ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('customer_name', sa.String(), nullable=False),
        sa.Column('customer_email', sa.String(), nullable=False),
        sa.Column('customer_phone', sa.String(), nullable=False),
        sa.Column('appointment_date', sa.String(10), nullable=False),
        sa.Column('start_time', sa.String(5), nullable=False),
        sa.Column('end_time', sa.String(5), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('confirmation_number', sa.String(16), nullable=False, unique=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_appointments_business_date', 'appointments', ['business_id', 'appointment_date'])

    # Two active bookings can never share a start time
    op.create_index(
        'uq_appointments_active_slot',
        'appointments',
        ['business_id', 'appointment_date', 'start_time'],
        unique=True,
        postgresql_where=ACTIVE_SLOT_WHERE,
        sqlite_where=ACTIVE_SLOT_WHERE,
    )

    # 5. Notification queue
    op.create_table(
        'notification_queue',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('recipient_id', sa.String(255), nullable=False),
        sa.Column('recipient_type', sa.String(20), nullable=False),
        sa.Column('recipient_email', sa.String(255), nullable=False),
        sa.Column('recipient_phone', sa.String(30), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_notification_queue_status_scheduled', 'notification_queue', ['status', 'scheduled_for'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_notification_queue_status_scheduled', table_name='notification_queue')
    op.drop_table('notification_queue')

    op.drop_index('uq_appointments_active_slot', table_name='appointments')
    op.drop_index('ix_appointments_business_date', table_name='appointments')
    op.drop_table('appointments')

    op.drop_table('availability_exceptions')
    op.drop_table('weekly_availability')

    op.drop_index('ix_services_is_active', table_name='services')
    op.drop_index('ix_services_business_id', table_name='services')
    op.drop_table('services')

    op.drop_table('business_notification_preferences')
    op.drop_table('businesses')
