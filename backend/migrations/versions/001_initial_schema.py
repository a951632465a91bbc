"""
Alembic migration: Initial order tracking schema.

Creates orders, notification_preferences, stages, order_progress and
notification_queue, and seeds the default production pipeline.

Revision ID: 001
Revises:
Create Date: 2026-01-12 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


DEFAULT_STAGES = [
    {
        'name': 'payment_received',
        'display_name': 'Payment Received',
        'description': 'Your payment has been confirmed and your order is in our system.',
        'sort_order': 1,
        'icon_name': 'CreditCard',
    },
    {
        'name': 'sent_to_manufacturer',
        'display_name': 'Order Sent to Manufacturer',
        'description': 'Your order has been sent to our manufacturing partner.',
        'sort_order': 2,
        'icon_name': 'Send',
    },
    {
        'name': 'materials_sourcing',
        'display_name': 'Materials Sourcing',
        'description': 'We are sourcing the premium materials for your order.',
        'sort_order': 3,
        'icon_name': 'Package',
    },
    {
        'name': 'production_started',
        'display_name': 'Production Started',
        'description': 'Your items are now being crafted by our skilled artisans.',
        'sort_order': 4,
        'icon_name': 'Hammer',
    },
    {
        'name': 'quality_check',
        'display_name': 'Quality Check',
        'description': 'Your order is undergoing thorough quality inspection.',
        'sort_order': 5,
        'icon_name': 'CheckCircle',
    },
    {
        'name': 'shipped',
        'display_name': 'Shipped',
        'description': 'Your order has been shipped and is on its way to you.',
        'sort_order': 6,
        'icon_name': 'Truck',
    },
    {
        'name': 'delivered',
        'display_name': 'Delivered',
        'description': 'Your order has been delivered. Enjoy!',
        'sort_order': 7,
        'icon_name': 'Home',
    },
]


def upgrade() -> None:
    """
    Create the order tracking tables and seed the default stages.
    """
    op.execute("""
        CREATE TYPE stage_status AS ENUM (
            'not_started',
            'in_progress',
            'completed'
        )
    """)

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(length=100), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('customer_email', sa.String(length=254), nullable=True),
        sa.Column('customer_phone', sa.String(length=20), nullable=True),
        sa.Column('customer_phone_normalized', sa.String(length=20), nullable=True),
        sa.Column('items_description', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('carrier', sa.String(length=20), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_delayed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
        ),
        sa.Column(
            'updated_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_orders'),
        sa.CheckConstraint('quantity >= 1', name='ck_orders_quantity_positive'),
        comment='Customer orders tracked through production',
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index(
        'ix_orders_customer_phone_normalized',
        'orders',
        ['customer_phone_normalized'],
    )
    op.create_index(
        'ix_orders_is_delayed',
        'orders',
        ['is_delayed'],
        postgresql_where=sa.text('is_delayed = TRUE'),
    )

    # Notification preferences
    op.create_table(
        'notification_preferences',
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sms_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('opted_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('order_id', name='pk_notification_preferences'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_notification_preferences_order_id',
            ondelete='CASCADE',
        ),
    )

    # Stages
    stages_table = op.create_table(
        'stages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('icon_name', sa.String(length=100), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_stages'),
        sa.UniqueConstraint('name', name='uq_stages_name'),
        sa.UniqueConstraint('sort_order', name='uq_stages_sort_order'),
        comment='Ordered production pipeline stages',
    )

    # Order progress
    op.create_table(
        'order_progress',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stage_id', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM(
                'not_started',
                'in_progress',
                'completed',
                name='stage_status',
                create_type=False,
            ),
            nullable=False,
            server_default='not_started',
        ),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('estimated_start_date', sa.Date(), nullable=True),
        sa.Column('estimated_end_date', sa.Date(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_order_progress'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_progress_order_id',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['stage_id'],
            ['stages.id'],
            name='fk_order_progress_stage_id',
        ),
        sa.UniqueConstraint(
            'order_id',
            'stage_id',
            name='uq_order_progress_order_stage',
        ),
        sa.CheckConstraint(
            "(status = 'completed') = (completed_at IS NOT NULL)",
            name='ck_order_progress_completed_at_matches_status',
        ),
        comment='Per-order, per-stage progress ledger',
    )
    op.create_index('ix_order_progress_order_id', 'order_progress', ['order_id'])
    op.create_index('ix_order_progress_status', 'order_progress', ['status'])

    # Notification queue
    op.create_table(
        'notification_queue',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('stage_id', sa.Integer(), nullable=False),
        sa.Column('channel', sa.String(length=5), nullable=False),
        sa.Column('recipient', sa.String(length=254), nullable=False),
        sa.Column('message_body', sa.Text(), nullable=False),
        sa.Column(
            'status',
            sa.String(length=14),
            nullable=False,
            server_default='pending_review',
        ),
        sa.Column('batch_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text('now()'),
        ),
        sa.PrimaryKeyConstraint('id', name='pk_notification_queue'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_notification_queue_order_id',
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['stage_id'],
            ['stages.id'],
            name='fk_notification_queue_stage_id',
        ),
        sa.CheckConstraint(
            "channel IN ('sms', 'email')",
            name='ck_notification_queue_channel',
        ),
        sa.CheckConstraint(
            "status IN ('pending_review', 'approved', 'sent', 'failed')",
            name='ck_notification_queue_status',
        ),
        comment='Customer notifications awaiting review and delivery',
    )
    op.create_index('ix_notification_queue_order_id', 'notification_queue', ['order_id'])
    op.create_index('ix_notification_queue_batch_id', 'notification_queue', ['batch_id'])
    op.create_index('ix_notification_queue_status', 'notification_queue', ['status'])
    op.create_index(
        'ix_notification_queue_status_created',
        'notification_queue',
        ['status', 'created_at'],
    )

    op.bulk_insert(stages_table, DEFAULT_STAGES)


def downgrade() -> None:
    """
    Drop the order tracking tables and the stage_status type.
    """
    op.drop_index('ix_notification_queue_status_created', table_name='notification_queue')
    op.drop_index('ix_notification_queue_status', table_name='notification_queue')
    op.drop_index('ix_notification_queue_batch_id', table_name='notification_queue')
    op.drop_index('ix_notification_queue_order_id', table_name='notification_queue')
    op.drop_table('notification_queue')

    op.drop_index('ix_order_progress_status', table_name='order_progress')
    op.drop_index('ix_order_progress_order_id', table_name='order_progress')
    op.drop_table('order_progress')

    op.drop_table('stages')
    op.drop_table('notification_preferences')

    op.drop_index('ix_orders_is_delayed', table_name='orders')
    op.drop_index('ix_orders_customer_phone_normalized', table_name='orders')
    op.drop_index('ix_orders_order_number', table_name='orders')
    op.drop_table('orders')

    op.execute('DROP TYPE IF EXISTS stage_status')
