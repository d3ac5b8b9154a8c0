from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Annotated

from .. import schemas, crud
from ..auth import CurrentUser, ROLE_VENDOR, require_role
from ..database import get_db

router = APIRouter(prefix="/listings", tags=["Listings"])


@router.post("/", response_model=schemas.ListingRead, status_code=status.HTTP_201_CREATED)
def create_listing(
        listing: schemas.ListingCreate,
        user: Annotated[CurrentUser, Depends(require_role(ROLE_VENDOR))],
        db: Session = Depends(get_db),
):
    """
    Vendors list under their own account; admins must say which vendor owns the listing.
    """
    vendor_id = listing.vendor_id if user.is_admin else user.id
    if vendor_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="vendor_id is required")
    if not user.is_admin:
        # Vendor accounts live in the accounts service; mirror the contact on first use.
        crud.ensure_vendor(db, vendor_id, email=user.email)
    elif crud.get_vendor(db, vendor_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vendor not found")
    return crud.create_listing(db, listing, vendor_id=vendor_id)


@router.get("/{listing_id}", response_model=schemas.ListingRead)
def read_listing(listing_id: int, db: Session = Depends(get_db)):
    db_listing = crud.get_listing(db, listing_id)
    if db_listing is None or not db_listing.is_active:
        raise HTTPException(status_code=404, detail="Listing not found")
    return db_listing
