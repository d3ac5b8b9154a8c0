from sqlalchemy import (
    Column, Integer, Date, TIMESTAMP, String, Text, Index, Float, Boolean, ForeignKey, JSON
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
import datetime

from .database import Base


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every TIMESTAMP column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# --- Enums ---
class ServiceType(str, PyEnum):
    STAY = "stay"
    TOUR = "tour"
    ADVENTURE = "adventure"
    VEHICLE = "vehicle"


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, PyEnum):
    UNPAID = "unpaid"
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class DiscountType(str, PyEnum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class SettlementStatus(str, PyEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    CANCELLED = "cancelled"


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)


class Listing(Base):
    """A stay, tour, adventure or vehicle rental offered by one vendor."""
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    service_type = Column(SQLEnum(ServiceType), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=True)
    currency = Column(String(10), default="INR", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Only used by stays of category "bnbs" that are rented as a whole unit.
    bnb_unit_type = Column(String(100), nullable=True)
    bnb_price = Column(Float, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow)

    vendor = relationship("Vendor")
    units = relationship(
        "BookableUnit",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="BookableUnit.id",
    )


class BookableUnit(Base):
    """A room, tour option, adventure option or vehicle option."""
    __tablename__ = "bookable_units"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)

    # Vehicles are named by their model.
    name = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    taxes = Column(Float, default=0, nullable=False)
    capacity = Column(Integer, default=1, nullable=False)
    available = Column(Integer, default=1, nullable=False)

    # duration, difficulty, vehicle type, ...
    details = Column(JSON, default=dict, nullable=False)

    listing = relationship("Listing", back_populates="units")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)

    service_type = Column(SQLEnum(ServiceType), nullable=False, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)

    # Guests may book without an account; customer_id comes from the JWT when present.
    customer_id = Column(Integer, nullable=True, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False, index=True)
    customer_phone = Column(String(50), nullable=True)
    customer_notes = Column(Text, nullable=True)

    # check-in/out, start/end or pickup/dropoff depending on service_type
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    nights = Column(Integer, nullable=False)

    adults = Column(Integer, default=1, nullable=False)
    children = Column(Integer, default=0, nullable=False)
    infants = Column(Integer, default=0, nullable=False)

    currency = Column(String(10), default="INR", nullable=False)
    subtotal = Column(Float, nullable=False)
    taxes = Column(Float, default=0, nullable=False)
    fees = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    coupon_code = Column(String(64), nullable=True)
    total_amount = Column(Float, nullable=False)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False)
    source = Column(String(50), default="web", nullable=False)
    extra = Column(JSON, default=dict, nullable=False)

    cancelled_at = Column(TIMESTAMP, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, nullable=True)
    cancelled_by_role = Column(String(20), nullable=True)
    completed_at = Column(TIMESTAMP, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow)
    updated_at = Column(TIMESTAMP, default=utcnow, onupdate=utcnow)

    lines = relationship(
        "BookingLine",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingLine.id",
    )
    listing = relationship("Listing")
    vendor = relationship("Vendor")

    # The overlap query filters on listing + range, the scheduler on status + end_date.
    __table_args__ = (
        Index("ix_bookings_listing_range", "listing_id", "start_date", "end_date"),
        Index("ix_bookings_vendor_status", "vendor_id", "status"),
        Index("ix_bookings_status_end_date", "status", "end_date"),
    )


class BookingLine(Base):
    """One requested unit of a booking, priced at booking time."""
    __tablename__ = "booking_lines"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)

    # unit_id is empty for the synthetic BnB unit; matching then falls back to unit_name.
    unit_id = Column(Integer, nullable=True)
    unit_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    taxes = Column(Float, default=0, nullable=False)
    nights = Column(Integer, nullable=False)
    total = Column(Float, nullable=False)
    addons = Column(JSON, default=list, nullable=False)
    details = Column(JSON, default=dict, nullable=False)

    booking = relationship("Booking", back_populates="lines")


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), unique=True, index=True, nullable=False)
    discount_type = Column(SQLEnum(DiscountType), nullable=False)
    discount_amount = Column(Float, nullable=False)
    min_purchase = Column(Float, default=0, nullable=False)
    max_discount = Column(Float, nullable=True)
    start_date = Column(TIMESTAMP, default=utcnow, nullable=False)
    expiry_date = Column(TIMESTAMP, nullable=False)
    usage_limit = Column(Integer, nullable=True)
    usage_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)


class Settlement(Base):
    """Vendor payout generated for every booking."""
    __tablename__ = "settlements"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    listing_id = Column(Integer, nullable=False)
    vendor_id = Column(Integer, nullable=False, index=True)
    amount_due = Column(Float, nullable=False)
    amount_paid = Column(Float, default=0, nullable=False)
    currency = Column(String(10), default="INR", nullable=False)
    scheduled_date = Column(Date, nullable=False)
    paid_at = Column(TIMESTAMP, nullable=True)
    status = Column(SQLEnum(SettlementStatus), default=SettlementStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP, default=utcnow)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(Integer, primary_key=True, index=True)

    # Status to track if the event has been sent
    status = Column(String(20), default="PENDING", nullable=False)

    # The Kafka topic to send the message to
    topic = Column(String(255), nullable=False)

    # The full JSON payload to be sent
    payload = Column(Text, nullable=False)

    created_at = Column(TIMESTAMP, default=utcnow)

    __table_args__ = (
        Index('ix_outbox_events_status', 'status'),
    )
