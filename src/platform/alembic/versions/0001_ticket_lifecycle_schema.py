"""ticket_lifecycle_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Schema:
- events / pricing_tiers / event_sessions / seats: inventory counters and seat map
- reservations: short-lived capacity holds
- carts / cart_items, checkouts: shopping intent and its frozen snapshot
- orders, payments: order state machine and gateway payments (refund credits are negative rows)
- tickets: issued credentials, one per order line unit
- ticket_transfers, ticket_refunds: post-purchase workflows
- audit_logs: append-only trail

Counters carry CHECK constraints so a bad decrement aborts instead of overselling.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, *, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _money(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable)


def upgrade() -> None:
    """Create all lifecycle tables."""

    # ========== Inventory ==========

    op.create_table(
        'events',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('organizer_id', UUID(as_uuid=True), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('total_capacity', sa.Integer(), nullable=False),
        sa.Column('available_tickets', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        _money('base_price'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        _ts('start_date', nullable=False),
        _ts('end_date', nullable=False),
        _ts('sales_start_date'),
        _ts('sales_end_date'),
        sa.Column('is_streaming', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('deleted_at'),
        _ts('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'available_tickets >= 0 AND available_tickets <= total_capacity',
            name='ck_events_available_tickets',
        ),
    )
    op.create_index('ix_events_organizer_id', 'events', ['organizer_id'])

    op.create_table(
        'pricing_tiers',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        _money('base_price'),
        sa.Column('total_tickets', sa.Integer(), nullable=False),
        sa.Column('available_tickets', sa.Integer(), nullable=False),
        _ts('sales_start_date'),
        _ts('sales_end_date'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.CheckConstraint(
            'available_tickets >= 0 AND available_tickets <= total_tickets',
            name='ck_pricing_tiers_available_tickets',
        ),
    )
    op.create_index('ix_pricing_tiers_event_id', 'pricing_tiers', ['event_id'])

    op.create_table(
        'event_sessions',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('available_seats', sa.Integer(), nullable=False),
        _ts('start_time', nullable=False),
        _money('base_price_override', nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.CheckConstraint(
            'available_seats >= 0 AND available_seats <= capacity',
            name='ck_event_sessions_available_seats',
        ),
    )
    op.create_index('ix_event_sessions_event_id', 'event_sessions', ['event_id'])

    op.create_table(
        'seats',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('tier_id', UUID(as_uuid=True), nullable=False),
        sa.Column('section', sa.String(length=20), nullable=False),
        sa.Column('row', sa.String(length=10), nullable=False),
        sa.Column('number', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available'),
        sa.Column('reservation_id', UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
        sa.ForeignKeyConstraint(['tier_id'], ['pricing_tiers.id']),
        sa.UniqueConstraint('event_id', 'section', 'row', 'number', name='uq_seat_position'),
    )
    op.create_index('ix_seats_event_id', 'seats', ['event_id'])
    op.create_index('ix_seats_tier_id', 'seats', ['tier_id'])

    op.create_table(
        'reservations',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('tier_id', UUID(as_uuid=True), nullable=True),
        sa.Column('session_id', UUID(as_uuid=True), nullable=True),
        sa.Column('seat_ids', JSONB(), nullable=False, server_default='[]'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='held'),
        sa.Column('checkout_id', UUID(as_uuid=True), nullable=True),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        sa.Column('payment_id', UUID(as_uuid=True), nullable=True),
        _ts('created_at', nullable=False),
        _ts('expires_at', nullable=False),
        _ts('confirmed_at'),
        _ts('released_at'),
        sa.Column('release_reason', sa.String(length=50), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id']),
    )
    op.create_index('ix_reservations_user_id', 'reservations', ['user_id'])
    op.create_index(
        'ix_reservations_status_expires_at', 'reservations', ['status', 'expires_at']
    )

    # ========== Cart / Checkout ==========

    op.create_table(
        'carts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('currency', sa.String(length=3), nullable=True),
        _ts('created_at', nullable=False),
        _ts('expires_at', nullable=False),
        _ts('updated_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_carts_user_id', 'carts', ['user_id'])

    op.create_table(
        'cart_items',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('cart_id', UUID(as_uuid=True), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('line', JSONB(), nullable=False),
        _ts('added_at', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])

    op.create_table(
        'checkouts',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('cart_id', UUID(as_uuid=True), nullable=True),
        sa.Column('payment_method', sa.String(length=30), nullable=False),
        sa.Column('billing_info', JSONB(), nullable=True),
        sa.Column('lines', JSONB(), nullable=False),
        _money('total_amount'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('reservation_ids', JSONB(), nullable=False, server_default='[]'),
        sa.Column('payment_id', UUID(as_uuid=True), nullable=True),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        _ts('created_at', nullable=False),
        _ts('expires_at', nullable=False),
        _ts('completed_at'),
        _ts('cancelled_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_checkouts_user_id', 'checkouts', ['user_id'])
    op.create_index('ix_checkouts_status_expires_at', 'checkouts', ['status', 'expires_at'])

    # ========== Orders / Payments ==========

    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('checkout_id', UUID(as_uuid=True), nullable=True),
        _money('total_amount'),
        _money('amount_paid'),
        _money('balance_due'),
        _money('refunded_amount'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('billing_info', JSONB(), nullable=True),
        sa.Column('metadata', JSONB(), nullable=False, server_default='{}'),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
        _ts('confirmed_at'),
        _ts('cancelled_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('checkout_id'),
    )
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=True),
        sa.Column('checkout_id', UUID(as_uuid=True), nullable=True),
        sa.Column('gateway', sa.String(length=20), nullable=False),
        sa.Column('payment_method', sa.String(length=30), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        _money('amount'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('gateway_transaction_id', sa.String(length=255), nullable=True),
        sa.Column('gateway_response', JSONB(), nullable=False, server_default='{}'),
        _money('refunded_amount'),
        sa.Column('metadata', JSONB(), nullable=False, server_default='{}'),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
        _ts('completed_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_number'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])
    op.create_index('ix_payments_checkout_id', 'payments', ['checkout_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    # ========== Tickets ==========

    op.create_table(
        'tickets',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('ticket_number', sa.String(length=40), nullable=False),
        sa.Column('event_id', UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', UUID(as_uuid=True), nullable=True),
        sa.Column('tier_id', UUID(as_uuid=True), nullable=True),
        sa.Column('seat_id', UUID(as_uuid=True), nullable=True),
        sa.Column('seat_label', sa.String(length=40), nullable=True),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('purchaser_id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('reservation_id', UUID(as_uuid=True), nullable=True),
        sa.Column('line_index', sa.Integer(), nullable=False),
        sa.Column('unit_index', sa.Integer(), nullable=False),
        sa.Column('ticket_type', sa.String(length=20), nullable=False),
        sa.Column('ticket_format', sa.String(length=20), nullable=False),
        sa.Column('credential_format', sa.String(length=20), nullable=False),
        sa.Column('qr_code_data', sa.Text(), nullable=True),
        sa.Column('nfc_data', sa.Text(), nullable=True),
        sa.Column('rfid_data', sa.Text(), nullable=True),
        sa.Column('barcode_data', sa.String(length=64), nullable=True),
        sa.Column('validation_key', sa.String(length=64), nullable=True),
        sa.Column('stream_access_token', sa.String(length=64), nullable=True),
        _money('unit_price'),
        _money('service_fee'),
        _money('total_price'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        _ts('valid_until', nullable=False),
        sa.Column('transfer_count', sa.Integer(), nullable=False, server_default='0'),
        _ts('used_at'),
        sa.Column('validation_method', sa.String(length=20), nullable=True),
        _ts('created_at', nullable=False),
        _ts('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('ticket_number'),
        sa.UniqueConstraint('order_id', 'line_index', 'unit_index', name='uq_ticket_order_unit'),
    )
    op.create_index('ix_tickets_event_id', 'tickets', ['event_id'])
    op.create_index('ix_tickets_user_id', 'tickets', ['user_id'])
    op.create_index('ix_tickets_order_id', 'tickets', ['order_id'])
    op.create_index('ix_tickets_status', 'tickets', ['status'])
    op.create_index('ix_tickets_qr_validation_key', 'tickets', ['validation_key'])
    op.create_index('ix_tickets_barcode_data', 'tickets', ['barcode_data'])

    op.create_table(
        'ticket_transfers',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('ticket_id', UUID(as_uuid=True), nullable=False),
        sa.Column('from_user_id', UUID(as_uuid=True), nullable=False),
        sa.Column('to_user_id', UUID(as_uuid=True), nullable=True),
        sa.Column('to_email', sa.String(length=255), nullable=True),
        sa.Column('transfer_code', sa.String(length=40), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        _ts('requested_at', nullable=False),
        _ts('expires_at', nullable=False),
        sa.Column('accepted_by', UUID(as_uuid=True), nullable=True),
        _ts('accepted_at'),
        _ts('declined_at'),
        _ts('cancelled_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id']),
        sa.UniqueConstraint('transfer_code'),
    )
    op.create_index('ix_ticket_transfers_ticket_id', 'ticket_transfers', ['ticket_id'])
    op.create_index('ix_ticket_transfers_from_user_id', 'ticket_transfers', ['from_user_id'])
    op.create_index('ix_ticket_transfers_to_user_id', 'ticket_transfers', ['to_user_id'])
    op.create_index('ix_ticket_transfers_status', 'ticket_transfers', ['status'])

    op.create_table(
        'ticket_refunds',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('ticket_id', UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), nullable=False),
        _money('original_amount'),
        _money('refund_amount'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        _ts('requested_at', nullable=False),
        sa.Column('approved_by', UUID(as_uuid=True), nullable=True),
        _ts('approved_at'),
        sa.Column('rejected_by', UUID(as_uuid=True), nullable=True),
        _ts('rejected_at'),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('gateway_refund_id', sa.String(length=255), nullable=True),
        sa.Column('refund_payment_id', UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['ticket_id'], ['tickets.id']),
    )
    op.create_index('ix_ticket_refunds_ticket_id', 'ticket_refunds', ['ticket_id'])
    op.create_index('ix_ticket_refunds_order_id', 'ticket_refunds', ['order_id'])
    op.create_index('ix_ticket_refunds_user_id', 'ticket_refunds', ['user_id'])
    op.create_index('ix_ticket_refunds_status', 'ticket_refunds', ['status'])

    # ========== Audit ==========

    op.create_table(
        'audit_logs',
        sa.Column('id', UUID(as_uuid=True), nullable=False),
        sa.Column('actor_id', UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(length=40), nullable=False),
        sa.Column('resource_kind', sa.String(length=30), nullable=False),
        sa.Column('resource_id', UUID(as_uuid=True), nullable=False),
        sa.Column('before', JSONB(), nullable=True),
        sa.Column('after', JSONB(), nullable=True),
        sa.Column('metadata', JSONB(), nullable=False, server_default='{}'),
        sa.Column('suspicious', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('created_at', nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_resource', 'audit_logs', ['resource_kind', 'resource_id'])


def downgrade() -> None:
    """Drop all lifecycle tables (reverse dependency order)."""
    for table in (
        'audit_logs',
        'ticket_refunds',
        'ticket_transfers',
        'tickets',
        'payments',
        'orders',
        'checkouts',
        'cart_items',
        'carts',
        'reservations',
        'seats',
        'event_sessions',
        'pricing_tiers',
        'events',
    ):
        op.drop_table(table)
