import json
import datetime
from typing import Optional

from sqlalchemy import or_, update
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .config import settings


# --- Listings ---

def get_listing(db: Session, listing_id: int, lock: bool = False) -> Optional[models.Listing]:
    """
    With lock=True the listing row is selected FOR UPDATE, which serialises
    concurrent bookings of the same listing until the transaction ends.
    """
    query = db.query(models.Listing).filter(models.Listing.id == listing_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def create_listing(db: Session, listing: schemas.ListingCreate, vendor_id: int) -> models.Listing:
    data = listing.model_dump(exclude={"units", "vendor_id"})
    db_listing = models.Listing(**data, vendor_id=vendor_id)
    for unit in listing.units:
        db_listing.units.append(models.BookableUnit(**unit.model_dump()))
    db.add(db_listing)
    db.commit()
    db.refresh(db_listing)
    return db_listing


def get_vendor(db: Session, vendor_id: int) -> Optional[models.Vendor]:
    return db.query(models.Vendor).filter(models.Vendor.id == vendor_id).first()


def ensure_vendor(db: Session, vendor_id: int, email: Optional[str] = None) -> models.Vendor:
    vendor = get_vendor(db, vendor_id)
    if vendor is None:
        vendor = models.Vendor(id=vendor_id, full_name="Vendor", email=email)
        db.add(vendor)
        db.commit()
    elif email and vendor.email != email:
        vendor.email = email
        db.commit()
    return vendor


# --- Overlap queries ---

def get_overlapping_bookings(
    db: Session, listing_id: int, start_date: datetime.date, end_date: datetime.date
) -> list[models.Booking]:
    """
    Non-cancelled bookings of a listing that overlap [start_date, end_date).

    The logic for an overlap is:
    (Existing Start Date < New End Date) AND (Existing End Date > New Start Date)
    """
    return (
        db.query(models.Booking)
        .options(selectinload(models.Booking.lines))
        .filter(
            models.Booking.listing_id == listing_id,
            models.Booking.status != models.BookingStatus.CANCELLED,
            models.Booking.start_date < end_date,  # Existing start is before new end
            models.Booking.end_date > start_date,  # Existing end is after new start
        )
        .all()
    )


def get_active_bookings_for_listing(db: Session, listing_id: int) -> list[models.Booking]:
    return (
        db.query(models.Booking)
        .options(selectinload(models.Booking.lines))
        .filter(
            models.Booking.listing_id == listing_id,
            models.Booking.status != models.BookingStatus.CANCELLED,
        )
        .order_by(models.Booking.start_date)
        .all()
    )


# --- Coupons ---

def get_active_coupon(db: Session, code: str) -> Optional[models.Coupon]:
    return db.query(models.Coupon).filter(
        models.Coupon.code == code.strip().upper(),
        models.Coupon.is_active.is_(True),
    ).first()


def create_coupon(db: Session, coupon: schemas.CouponCreate) -> models.Coupon:
    data = coupon.model_dump(exclude_none=True)
    data["code"] = coupon.code.strip().upper()
    db_coupon = models.Coupon(**data)
    db.add(db_coupon)
    db.commit()
    db.refresh(db_coupon)
    return db_coupon


def get_coupons(db: Session, skip: int = 0, limit: int = 100) -> list[models.Coupon]:
    return db.query(models.Coupon).order_by(models.Coupon.id.desc()).offset(skip).limit(limit).all()


def increment_coupon_usage(db: Session, coupon_id: int) -> None:
    """
    Increments usage in SQL so concurrent redemptions are all counted.
    Note: Does NOT commit. It rides on the booking transaction.
    """
    db.execute(
        update(models.Coupon)
        .where(models.Coupon.id == coupon_id)
        .values(usage_count=models.Coupon.usage_count + 1)
    )


# --- Bookings ---

def create_booking(
    db: Session,
    booking: models.Booking,
    settlement_due: datetime.date,
    coupon_id: Optional[int] = None,
) -> models.Booking:
    """
    Atomically creates a new booking, its settlement, the coupon redemption
    and the BOOKING_CREATED outbox event.
    """
    db.add(booking)
    db.flush()

    db.add(models.Settlement(
        booking_id=booking.id,
        listing_id=booking.listing_id,
        vendor_id=booking.vendor_id,
        amount_due=booking.total_amount,
        amount_paid=0,
        currency=booking.currency,
        scheduled_date=settlement_due,
        status=models.SettlementStatus.PENDING,
        notes="Auto-generated from booking",
    ))

    if coupon_id is not None:
        increment_coupon_usage(db, coupon_id)

    create_booking_event_in_outbox(db, booking, "BOOKING_CREATED")

    db.commit()
    db.refresh(booking)
    return booking


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def get_bookings(
    db: Session,
    vendor_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    customer_email: Optional[str] = None,
    status: Optional[models.BookingStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[models.Booking]:
    query = db.query(models.Booking)
    if status is not None:
        query = query.filter(models.Booking.status == status)
    if vendor_id is not None:
        query = query.filter(models.Booking.vendor_id == vendor_id)
    if customer_id is not None or customer_email is not None:
        clauses = []
        if customer_id is not None:
            clauses.append(models.Booking.customer_id == customer_id)
        if customer_email:
            clauses.append(models.Booking.customer_email == customer_email)
        query = query.filter(or_(*clauses))
    return (
        query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def cancel_settlement(db: Session, booking_id: int) -> None:
    """Note: Does NOT commit."""
    db.query(models.Settlement).filter(
        models.Settlement.booking_id == booking_id,
        models.Settlement.status == models.SettlementStatus.PENDING,
    ).update({models.Settlement.status: models.SettlementStatus.CANCELLED}, synchronize_session=False)


def reopen_settlement(db: Session, booking_id: int) -> None:
    """Puts the cancelled settlement of a reactivated booking back to pending. Note: Does NOT commit."""
    db.query(models.Settlement).filter(
        models.Settlement.booking_id == booking_id,
        models.Settlement.status == models.SettlementStatus.CANCELLED,
    ).update({models.Settlement.status: models.SettlementStatus.PENDING}, synchronize_session=False)


# --- Functions for the scheduler ---

def get_bookings_ended_before(
    db: Session, target_date: datetime.date, status: models.BookingStatus = models.BookingStatus.CONFIRMED
) -> list[models.Booking]:
    """
    Retrieves bookings in `status` whose range ended before the given date.
    """
    return db.query(models.Booking).filter(
        models.Booking.status == status,
        models.Booking.end_date < target_date,
    ).all()


def create_booking_event_in_outbox(db: Session, booking: models.Booking, event: str) -> None:
    """
    Creates a booking lifecycle event in the outbox table.
    Note: Does NOT commit. The caller is responsible for the commit.
    """
    payload = {
        "event": event,
        "booking_id": booking.id,
        "listing_id": booking.listing_id,
        "service_type": models.ServiceType(booking.service_type).value,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
    }

    db_outbox_event = models.OutboxEvent(
        topic=settings.KAFKA_BOOKING_TOPIC,
        payload=json.dumps(payload),
        status="PENDING"
    )
    db.add(db_outbox_event)
