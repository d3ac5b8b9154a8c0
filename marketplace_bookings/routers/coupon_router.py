from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Annotated

from .. import schemas, crud, pricing
from ..auth import CurrentUser, ROLE_ADMIN, get_current_user, require_role
from ..database import get_db
from ..models import utcnow
from ..exceptions import CouponError, CouponNotFoundError

router = APIRouter(prefix="/coupons", tags=["Coupons"])


@router.post("/", response_model=schemas.CouponRead, status_code=status.HTTP_201_CREATED)
def create_coupon(
        coupon: schemas.CouponCreate,
        admin: Annotated[CurrentUser, Depends(require_role(ROLE_ADMIN))],
        db: Session = Depends(get_db),
):
    try:
        return crud.create_coupon(db, coupon)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Coupon code already exists")


@router.get("/", response_model=List[schemas.CouponRead])
def read_coupons(
        admin: Annotated[CurrentUser, Depends(require_role(ROLE_ADMIN))],
        db: Session = Depends(get_db),
        skip: int = 0,
        limit: int = 100,
):
    return crud.get_coupons(db, skip=skip, limit=limit)


@router.post("/validate", response_model=schemas.CouponValidateResult)
def validate_coupon(
        body: schemas.CouponValidateRequest,
        user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    """
    Checks a coupon against a cart subtotal and returns the discount it would give.
    """
    try:
        if not body.code or not body.code.strip():
            raise CouponError("Coupon code is required")

        coupon = crud.get_active_coupon(db, body.code)
        if coupon is None:
            raise CouponNotFoundError()

        reason = pricing.coupon_rejection_reason(coupon, body.subtotal, utcnow())
        if reason is not None:
            raise CouponError(reason)
    except CouponError as e:
        raise e.to_http()

    return schemas.CouponValidateResult(
        id=coupon.id,
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount_amount=coupon.discount_amount,
        min_purchase=coupon.min_purchase,
        applied_discount=pricing.compute_discount(coupon, body.subtotal),
    )
