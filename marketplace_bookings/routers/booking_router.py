import logging
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import List, Annotated, Optional

from fastapi_limiter.depends import RateLimiter

from .. import schemas, services, notifications, crud
from ..auth import CurrentUser, ROLE_ADMIN, ROLE_VENDOR, get_current_user, get_optional_user, get_key_by_user_id_or_ip
from ..config import settings
from ..database import get_db
from ..exceptions import BookingError
from ..models import BookingStatus

logger = logging.getLogger("booking_service")

router = APIRouter(prefix="/bookings", tags=["Bookings"])

# Module level so tests can override them through app.dependency_overrides.
create_rate_limit = RateLimiter(
    times=settings.BOOKING_RATE_LIMIT_PER_MINUTE, minutes=1, identifier=get_key_by_user_id_or_ip
)
read_rate_limit = RateLimiter(
    times=settings.READ_RATE_LIMIT_PER_MINUTE, minutes=1, identifier=get_key_by_user_id_or_ip
)


@router.post("/", response_model=schemas.BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
        booking: schemas.BookingCreate,
        current_user: Annotated[Optional[CurrentUser], Depends(get_optional_user)],
        db: Session = Depends(get_db),
        limit: None = Depends(create_rate_limit)
):
    """
    Create a booking for a stay, tour, adventure or vehicle rental.
    Guests may book anonymously; signed-in customers get the booking linked to their account.
    """
    try:
        db_booking = services.create_booking(db=db, request=booking, current_user=current_user)
    except BookingError as e:
        db.rollback()
        raise e.to_http()
    except Exception as e:
        # Unknown units and database errors end up here
        logger.exception("Booking creation error")
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An error occurred while creating the booking: {e}"
        )

    # Mail failures are logged inside; the booking stands regardless.
    await notifications.notify_booking_created(db_booking, db_booking.vendor)

    return db_booking


@router.get("/", response_model=List[schemas.BookingRead])
def read_bookings(
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        status_filter: Optional[str] = Query(default=None, alias="status"),
        vendor_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
        limit2: None = Depends(read_rate_limit)
):
    """
    Admins see every booking (optionally for one vendor), vendors see their own,
    customers see the bookings made with their account or email.
    """
    try:
        return services.list_bookings_for_user(
            db, user, status=status_filter, vendor_id=vendor_id, skip=skip, limit=limit
        )
    except BookingError as e:
        raise e.to_http()


@router.get("/{booking_id}", response_model=schemas.BookingRead)
def read_booking(
        booking_id: int,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    try:
        return services.get_booking_for_user(db, booking_id, user)
    except BookingError as e:
        raise e.to_http()


@router.patch("/{booking_id}", response_model=schemas.BookingRead)
async def update_booking(
        booking_id: int,
        update: schemas.BookingUpdate,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    """
    Change status, payment status or metadata of a booking.
    Customers can only cancel, and must say why.
    """
    try:
        change = services.update_booking(db, booking_id, user, update)
    except BookingError as e:
        db.rollback()
        raise e.to_http()

    booking = change.booking
    if change.status_changed:
        if change.actor_role in (ROLE_VENDOR, ROLE_ADMIN):
            await notifications.notify_status_changed(booking)
        elif booking.status == BookingStatus.CANCELLED:
            vendor = crud.get_vendor(db, booking.vendor_id)
            await notifications.notify_vendor_of_cancellation(
                booking, vendor, booking.cancellation_reason or change.reason
            )

    return booking
