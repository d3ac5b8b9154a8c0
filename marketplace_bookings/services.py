"""
Booking orchestration shared by stays, tours, adventures and vehicle rentals.

A booking request is validated, its lines are resolved against the listing's
units and priced, an optional coupon is applied, and the overlap check runs
inside the same transaction that inserts the booking. The listing row is
locked first so two requests for the same listing cannot both pass the check.
"""
import datetime
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from . import availability, crud, models, pricing, schemas
from .auth import CurrentUser, ROLE_ADMIN, ROLE_USER, ROLE_VENDOR
from .config import settings
from .exceptions import (
    BookingConflictError,
    BookingNotFoundError,
    BookingValidationError,
    ListingNotFoundError,
    PermissionDeniedError,
    UnitNotFoundError,
)
from .models import BookingStatus, PaymentStatus, ServiceType, utcnow

logger = logging.getLogger("booking_service")

# The first listing id present decides the service type when none is given.
LISTING_ID_FIELDS = [
    (ServiceType.STAY, "stay_id"),
    (ServiceType.TOUR, "tour_id"),
    (ServiceType.ADVENTURE, "adventure_id"),
    (ServiceType.VEHICLE, "vehicle_rental_id"),
]

DATE_FIELDS = {
    ServiceType.STAY: ("check_in", "check_out", "Invalid check-in/out dates"),
    ServiceType.TOUR: ("start_date", "end_date", "Invalid start/end dates"),
    ServiceType.ADVENTURE: ("start_date", "end_date", "Invalid start/end dates"),
    ServiceType.VEHICLE: ("pickup_date", "dropoff_date", "Invalid pickup/dropoff dates"),
}

LISTING_LABELS = {
    ServiceType.STAY: "Stay",
    ServiceType.TOUR: "Tour",
    ServiceType.ADVENTURE: "Adventure",
    ServiceType.VEHICLE: "Vehicle rental",
}

UNIT_LABELS = {
    ServiceType.STAY: "room",
    ServiceType.TOUR: "option",
    ServiceType.ADVENTURE: "option",
    ServiceType.VEHICLE: "vehicle",
}

EMPTY_LINES_MESSAGES = {
    ServiceType.STAY: "At least one room booking is required",
    ServiceType.TOUR: "Select at least one tour option",
    ServiceType.ADVENTURE: "Select at least one adventure option",
    ServiceType.VEHICLE: "Select at least one vehicle",
}


@dataclass
class RequestedLine:
    unit_id: Optional[int]
    unit_name: Optional[str]
    quantity: Optional[int]
    price: Optional[float]
    taxes: Optional[float]
    addons: list


# --- Request parsing ---

def resolve_service_type(request: schemas.BookingCreate) -> ServiceType:
    if request.service_type is not None:
        return ServiceType(request.service_type)
    for service_type, field_name in LISTING_ID_FIELDS:
        if getattr(request, field_name) is not None:
            return service_type
    raise BookingValidationError("A valid service type or reference id is required")


def resolve_listing_id(request: schemas.BookingCreate, service_type: ServiceType) -> int:
    field_name = dict(LISTING_ID_FIELDS)[service_type]
    listing_id = getattr(request, field_name)
    if listing_id is None or listing_id <= 0:
        raise BookingValidationError(f"Invalid {LISTING_LABELS[service_type].lower()} id")
    return listing_id


def resolve_date_range(
    request: schemas.BookingCreate, service_type: ServiceType
) -> tuple[datetime.date, datetime.date]:
    start_field, end_field, message = DATE_FIELDS[service_type]
    start = getattr(request, start_field)
    end = getattr(request, end_field)
    if start is None or end is None or end <= start:
        raise BookingValidationError(message)
    return start, end


def requested_lines(request: schemas.BookingCreate, service_type: ServiceType) -> list[RequestedLine]:
    if service_type == ServiceType.STAY:
        return [
            RequestedLine(
                unit_id=room.room_id,
                unit_name=room.room_name,
                quantity=room.quantity,
                price=room.price_per_night,
                taxes=room.taxes,
                addons=list(room.addons),
            )
            for room in request.rooms
        ]

    lines = []
    for item in request.items:
        price = item.price
        if price is None and service_type == ServiceType.VEHICLE:
            price = item.price_per_day
        lines.append(RequestedLine(
            unit_id=item.option_id,
            unit_name=item.option_name,
            quantity=item.quantity,
            price=price,
            taxes=item.taxes,
            addons=[],
        ))
    return lines


# --- Unit resolution ---

def find_unit(listing: models.Listing, unit_id: Optional[int], unit_name: Optional[str]):
    """Looks a unit up by id first, then by name."""
    if unit_id is not None:
        for unit in listing.units:
            if unit.id == unit_id:
                return unit
    if unit_name:
        for unit in listing.units:
            if unit.name == unit_name:
                return unit
    return None


def bnb_fallback_unit(listing: models.Listing) -> Optional[models.BookableUnit]:
    """BnBs rented as a whole expose one synthetic, id-less unit."""
    if listing.service_type != ServiceType.STAY or listing.category != "bnbs":
        return None
    if listing.bnb_price is None and not listing.bnb_unit_type:
        return None
    return models.BookableUnit(
        id=None,
        name=listing.bnb_unit_type or listing.name,
        price=listing.bnb_price or 0,
        taxes=0,
        capacity=1,
        details={},
    )


def price_lines(
    listing: models.Listing,
    service_type: ServiceType,
    lines: list[RequestedLine],
    nights: int,
) -> list[pricing.PricedLine]:
    label = UNIT_LABELS[service_type]
    priced = []
    for requested in lines:
        unit = find_unit(listing, requested.unit_id, requested.unit_name)
        if unit is None:
            unit = bnb_fallback_unit(listing)
        if unit is None:
            raise UnitNotFoundError(
                f"{label.capitalize()} {requested.unit_name or requested.unit_id} not found"
            )

        quantity = 1 if requested.quantity is None else requested.quantity
        if quantity <= 0:
            raise BookingValidationError(f"Invalid {label} quantity")

        unit_price = requested.price if requested.price is not None else (unit.price or 0)
        unit_taxes = requested.taxes if requested.taxes is not None else (unit.taxes or 0)

        details = dict(unit.details or {})
        if service_type != ServiceType.STAY:
            details.setdefault("capacity", unit.capacity)

        priced.append(pricing.PricedLine(
            unit_id=unit.id,
            unit_name=unit.name,
            quantity=quantity,
            unit_price=float(unit_price),
            taxes=float(unit_taxes),
            nights=nights,
            addons=requested.addons,
            details=details,
        ))
    return priced


# --- Booking creation ---

def create_booking(
    db: Session,
    request: schemas.BookingCreate,
    current_user: Optional[CurrentUser] = None,
    now: Optional[datetime.datetime] = None,
) -> models.Booking:
    """
    Validates, prices and persists a booking.

    Raises BookingValidationError (400), ListingNotFoundError (404) or
    BookingConflictError (409). An unknown unit raises UnitNotFoundError.
    """
    now = now or utcnow()

    customer = request.customer
    if customer is None or not customer.full_name or not customer.email:
        raise BookingValidationError("Guest name and email are required")

    service_type = resolve_service_type(request)
    listing_id = resolve_listing_id(request, service_type)

    lines = requested_lines(request, service_type)
    if not lines:
        raise BookingValidationError(EMPTY_LINES_MESSAGES[service_type])

    start, end = resolve_date_range(request, service_type)

    listing = crud.get_listing(db, listing_id, lock=True)
    if listing is None or not listing.is_active or listing.service_type != service_type:
        raise ListingNotFoundError(f"{LISTING_LABELS[service_type]} not found")

    nights = pricing.calculate_nights(start, end)
    priced = price_lines(listing, service_type, lines, nights)

    breakdown = pricing.aggregate(priced, fees=request.fees)
    coupon = crud.get_active_coupon(db, request.coupon_code) if request.coupon_code else None
    pricing.apply_coupon(breakdown, coupon, now)

    overlapping = crud.get_overlapping_bookings(db, listing.id, start, end)
    occupied = availability.occupied_unit_keys(overlapping)
    conflicts = availability.find_conflicting_names(priced, occupied)
    if conflicts:
        logger.warning(
            f"Booking conflict on {service_type.value} {listing.id} for {start} - {end}: {conflicts}"
        )
        raise BookingConflictError(availability.conflict_message(service_type, conflicts), conflicts)

    extra = {"notes": request.notes} if request.notes else {}
    booking = models.Booking(
        service_type=service_type,
        listing_id=listing.id,
        vendor_id=listing.vendor_id,
        customer_id=current_user.id if current_user is not None else request.customer_id,
        customer_name=customer.full_name,
        customer_email=str(customer.email),
        customer_phone=customer.phone,
        customer_notes=customer.notes,
        start_date=start,
        end_date=end,
        nights=nights,
        adults=request.guests.adults,
        children=request.guests.children,
        infants=request.guests.infants,
        currency=request.currency,
        subtotal=breakdown.subtotal,
        taxes=breakdown.taxes,
        fees=breakdown.fees,
        discount_amount=breakdown.discount,
        coupon_code=breakdown.coupon_code,
        total_amount=breakdown.total,
        status=BookingStatus.PENDING,
        payment_status=PaymentStatus.UNPAID,
        source=request.source,
        extra=extra,
        lines=[
            models.BookingLine(
                unit_id=line.unit_id,
                unit_name=line.unit_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                taxes=line.taxes,
                nights=line.nights,
                total=line.total,
                addons=line.addons,
                details=line.details,
            )
            for line in priced
        ],
    )

    redeemed_coupon_id = coupon.id if coupon is not None and breakdown.discount > 0 else None
    settlement_due = end + datetime.timedelta(days=settings.SETTLEMENT_DELAY_DAYS)
    booking = crud.create_booking(db, booking, settlement_due, coupon_id=redeemed_coupon_id)

    logger.info(
        f"Created {service_type.value} booking {booking.id} on listing {listing.id} "
        f"for {start} - {end}, total {booking.total_amount:.2f} {booking.currency}"
    )
    return booking


# --- Reading ---

def is_booking_customer(booking: models.Booking, user: CurrentUser) -> bool:
    if user.role != ROLE_USER:
        return False
    if booking.customer_id is not None and booking.customer_id == user.id:
        return True
    return bool(user.email) and booking.customer_email == user.email


def is_booking_vendor(booking: models.Booking, user: CurrentUser) -> bool:
    return user.role == ROLE_VENDOR and booking.vendor_id == user.id


def get_booking_for_user(db: Session, booking_id: int, user: CurrentUser) -> models.Booking:
    booking = crud.get_booking(db, booking_id)
    if booking is None:
        raise BookingNotFoundError("Booking not found")
    if user.is_admin or is_booking_vendor(booking, user) or is_booking_customer(booking, user):
        return booking
    raise PermissionDeniedError("Unauthorized")


def list_bookings_for_user(
    db: Session,
    user: CurrentUser,
    status: Optional[str] = None,
    vendor_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> list[models.Booking]:
    status_filter = None
    if status:
        try:
            status_filter = BookingStatus(status)
        except ValueError:
            raise BookingValidationError("Invalid status")

    if user.is_admin:
        return crud.get_bookings(db, vendor_id=vendor_id, status=status_filter, skip=skip, limit=limit)
    if user.is_vendor:
        return crud.get_bookings(db, vendor_id=user.id, status=status_filter, skip=skip, limit=limit)
    return crud.get_bookings(
        db, customer_id=user.id, customer_email=user.email, status=status_filter, skip=skip, limit=limit
    )


# --- Updates ---

def reactivate_booking(db: Session, booking: models.Booking) -> None:
    """
    Brings a cancelled booking back only if its units are still free for its
    dates. The listing row is locked for the check, as on creation.
    """
    crud.get_listing(db, booking.listing_id, lock=True)
    overlapping = [
        other for other in crud.get_overlapping_bookings(db, booking.listing_id, booking.start_date, booking.end_date)
        if other.id != booking.id
    ]
    conflicts = availability.find_conflicting_names(booking.lines, availability.occupied_unit_keys(overlapping))
    if conflicts:
        logger.warning(f"Cannot reactivate booking {booking.id}, units taken: {conflicts}")
        raise BookingConflictError(availability.conflict_message(booking.service_type, conflicts), conflicts)

    booking.cancelled_at = None
    booking.cancelled_by = None
    booking.cancelled_by_role = None
    booking.cancellation_reason = None
    crud.reopen_settlement(db, booking.id)


@dataclass
class BookingChange:
    booking: models.Booking
    previous_status: Optional[BookingStatus]
    actor_role: str
    reason: str

    @property
    def status_changed(self) -> bool:
        return self.previous_status is not None and self.previous_status != self.booking.status


def update_booking(
    db: Session,
    booking_id: int,
    user: CurrentUser,
    update: schemas.BookingUpdate,
    now: Optional[datetime.datetime] = None,
) -> BookingChange:
    """
    Applies a status / payment / metadata change.

    Vendors and admins may change anything; customers may only cancel, and
    must give a reason when they do.
    """
    now = now or utcnow()

    booking = crud.get_booking(db, booking_id)
    if booking is None:
        raise BookingNotFoundError("Booking not found")

    is_admin = user.is_admin
    is_vendor = is_booking_vendor(booking, user)
    is_customer = is_booking_customer(booking, user)
    is_staff = is_admin or is_vendor

    if not is_staff and not (is_customer and update.status == BookingStatus.CANCELLED.value):
        raise PermissionDeniedError("Unauthorized")

    actor_role = ROLE_ADMIN if is_admin else ROLE_VENDOR if is_vendor else ROLE_USER
    reason = (update.reason or "").strip()
    changed = False
    previous_status = None

    if update.status:
        previous_status = BookingStatus(booking.status)
        try:
            next_status = BookingStatus(update.status)
        except ValueError:
            raise BookingValidationError("Invalid status")
        if not is_staff and next_status != BookingStatus.CANCELLED:
            raise PermissionDeniedError("Customers can only cancel their booking.")

        if next_status == BookingStatus.CANCELLED:
            if is_customer and not is_staff and not reason:
                raise BookingValidationError("Cancellation reason is required")
            fallback = {
                ROLE_USER: "Customer cancelled the booking",
                ROLE_VENDOR: "Vendor cancelled the booking",
                ROLE_ADMIN: "Admin cancelled the booking",
            }[actor_role]
            booking.cancelled_at = now
            booking.cancelled_by = user.id
            booking.cancelled_by_role = actor_role
            booking.cancellation_reason = reason or booking.cancellation_reason or fallback
            if previous_status != BookingStatus.CANCELLED:
                crud.cancel_settlement(db, booking.id)
                crud.create_booking_event_in_outbox(db, booking, "BOOKING_CANCELLED")
        elif previous_status == BookingStatus.CANCELLED:
            reactivate_booking(db, booking)

        if next_status == BookingStatus.COMPLETED:
            if booking.completed_at is None or previous_status != BookingStatus.COMPLETED:
                booking.completed_at = now
        elif previous_status == BookingStatus.COMPLETED:
            booking.completed_at = None

        booking.status = next_status
        changed = True

    if update.payment_status:
        try:
            booking.payment_status = PaymentStatus(update.payment_status)
        except ValueError:
            raise BookingValidationError("Invalid payment status")
        changed = True

    if is_staff and isinstance(update.metadata, dict):
        booking.extra = {**(booking.extra or {}), **update.metadata}
        changed = True

    if reason:
        key = "user_cancellation_reason" if is_customer and not is_staff else "staff_cancellation_reason"
        booking.extra = {**(booking.extra or {}), key: reason}
        changed = True

    if not changed:
        raise BookingValidationError("No valid fields to update")

    db.commit()
    db.refresh(booking)

    if booking.status == BookingStatus.COMPLETED and previous_status != BookingStatus.COMPLETED:
        logger.info(f"Booking {booking.id} marked as completed. Amount: {booking.total_amount}")

    return BookingChange(
        booking=booking,
        previous_status=previous_status,
        actor_role=actor_role,
        reason=reason,
    )
