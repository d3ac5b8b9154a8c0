"""create booking tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


servicetype_enum = sa.Enum('STAY', 'TOUR', 'ADVENTURE', 'VEHICLE', name='servicetype')
bookingstatus_enum = sa.Enum('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED', name='bookingstatus')
paymentstatus_enum = sa.Enum('UNPAID', 'PENDING', 'PAID', 'REFUNDED', name='paymentstatus')
discounttype_enum = sa.Enum('PERCENTAGE', 'FIXED', name='discounttype')
settlementstatus_enum = sa.Enum('PENDING', 'PROCESSING', 'PAID', 'CANCELLED', name='settlementstatus')

ENUM_TYPES = (servicetype_enum, bookingstatus_enum, paymentstatus_enum, discounttype_enum, settlementstatus_enum)


def existing_enum(enum_type: sa.Enum) -> sa.Enum:
    """Column type for an ENUM that was already created, usable from several tables."""
    return sa.Enum(*enum_type.enums, name=enum_type.name).with_variant(
        postgresql.ENUM(*enum_type.enums, name=enum_type.name, create_type=False), "postgresql"
    )


def upgrade() -> None:
    """Upgrade schema."""
    # --- Create the ENUM types first ---
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
    )
    op.create_index('ix_vendors_id', 'vendors', ['id'])

    op.create_table(
        'listings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_type', existing_enum(servicetype_enum), nullable=False),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=True),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('bnb_unit_type', sa.String(length=100), nullable=True),
        sa.Column('bnb_price', sa.Float(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_listings_id', 'listings', ['id'])
    op.create_index('ix_listings_service_type', 'listings', ['service_type'])
    op.create_index('ix_listings_vendor_id', 'listings', ['vendor_id'])

    op.create_table(
        'bookable_units',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('listing_id', sa.Integer(), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('taxes', sa.Float(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('available', sa.Integer(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
    )
    op.create_index('ix_bookable_units_id', 'bookable_units', ['id'])
    op.create_index('ix_bookable_units_listing_id', 'bookable_units', ['listing_id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_type', existing_enum(servicetype_enum), nullable=False),
        sa.Column('listing_id', sa.Integer(), sa.ForeignKey('listings.id'), nullable=False),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('vendors.id'), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('customer_notes', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('nights', sa.Integer(), nullable=False),
        sa.Column('adults', sa.Integer(), nullable=False),
        sa.Column('children', sa.Integer(), nullable=False),
        sa.Column('infants', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('subtotal', sa.Float(), nullable=False),
        sa.Column('taxes', sa.Float(), nullable=False),
        sa.Column('fees', sa.Float(), nullable=False),
        sa.Column('discount_amount', sa.Float(), nullable=False),
        sa.Column('coupon_code', sa.String(length=64), nullable=True),
        sa.Column('total_amount', sa.Float(), nullable=False),
        sa.Column('status', existing_enum(bookingstatus_enum), nullable=False),
        sa.Column('payment_status', existing_enum(paymentstatus_enum), nullable=False),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('extra', sa.JSON(), nullable=False),
        sa.Column('cancelled_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        sa.Column('cancelled_by_role', sa.String(length=20), nullable=True),
        sa.Column('completed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_service_type', 'bookings', ['service_type'])
    op.create_index('ix_bookings_listing_id', 'bookings', ['listing_id'])
    op.create_index('ix_bookings_vendor_id', 'bookings', ['vendor_id'])
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])
    op.create_index('ix_bookings_customer_email', 'bookings', ['customer_email'])
    op.create_index('ix_bookings_listing_range', 'bookings', ['listing_id', 'start_date', 'end_date'])
    op.create_index('ix_bookings_vendor_status', 'bookings', ['vendor_id', 'status'])
    op.create_index('ix_bookings_status_end_date', 'bookings', ['status', 'end_date'])

    op.create_table(
        'booking_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=True),
        sa.Column('unit_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('taxes', sa.Float(), nullable=False),
        sa.Column('nights', sa.Integer(), nullable=False),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('addons', sa.JSON(), nullable=False),
        sa.Column('details', sa.JSON(), nullable=False),
    )
    op.create_index('ix_booking_lines_id', 'booking_lines', ['id'])
    op.create_index('ix_booking_lines_booking_id', 'booking_lines', ['booking_id'])

    op.create_table(
        'coupons',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('discount_type', existing_enum(discounttype_enum), nullable=False),
        sa.Column('discount_amount', sa.Float(), nullable=False),
        sa.Column('min_purchase', sa.Float(), nullable=False),
        sa.Column('max_discount', sa.Float(), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(), nullable=False),
        sa.Column('expiry_date', sa.TIMESTAMP(), nullable=False),
        sa.Column('usage_limit', sa.Integer(), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_coupons_id', 'coupons', ['id'])
    op.create_index('ix_coupons_code', 'coupons', ['code'], unique=True)

    op.create_table(
        'settlements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('listing_id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.Integer(), nullable=False),
        sa.Column('amount_due', sa.Float(), nullable=False),
        sa.Column('amount_paid', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('paid_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('status', existing_enum(settlementstatus_enum), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_settlements_id', 'settlements', ['id'])
    op.create_index('ix_settlements_booking_id', 'settlements', ['booking_id'])
    op.create_index('ix_settlements_vendor_id', 'settlements', ['vendor_id'])

    op.create_table(
        'outbox_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('topic', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=True),
    )
    op.create_index('ix_outbox_events_id', 'outbox_events', ['id'])
    op.create_index('ix_outbox_events_status', 'outbox_events', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    # --- Drop tables in reverse dependency order ---
    op.drop_table('outbox_events')
    op.drop_table('settlements')
    op.drop_table('coupons')
    op.drop_table('booking_lines')
    op.drop_table('bookings')
    op.drop_table('bookable_units')
    op.drop_table('listings')
    op.drop_table('vendors')

    # --- Then, drop the ENUM types (no-op outside PostgreSQL) ---
    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
