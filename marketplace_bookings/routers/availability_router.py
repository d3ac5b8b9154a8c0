import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional

from .. import schemas, crud, availability
from ..database import get_db
from ..models import ServiceType
from ..services import LISTING_LABELS

router = APIRouter(prefix="/availability", tags=["Availability"])


@router.get("/", response_model=schemas.AvailabilityRead)
def read_availability(
        service_type: Optional[str] = None,
        listing_id: Optional[int] = None,
        start: Optional[datetime.date] = None,
        end: Optional[datetime.date] = None,
        db: Session = Depends(get_db),
):
    """
    Booked ranges of a listing and, for a requested range, which units are still free.
    """
    try:
        kind = ServiceType(service_type)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or missing service_type")

    if listing_id is None or listing_id <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid listing id")

    has_range = start is not None and end is not None
    if has_range and start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End date must be after start date"
        )

    listing = crud.get_listing(db, listing_id)
    if listing is None or listing.service_type != kind:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{LISTING_LABELS[kind]} not found")

    bookings = crud.get_active_bookings_for_listing(db, listing.id)
    summary = availability.summarize_availability(
        listing, bookings, start if has_range else None, end if has_range else None
    )
    return {"service_type": kind, "listing_id": listing.id, **summary}
