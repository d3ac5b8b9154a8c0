from pydantic import BaseModel, Field, EmailStr, ConfigDict
from typing import List, Optional, Any
import datetime

from .config import settings
from .models import (
    ServiceType, BookingStatus, PaymentStatus, DiscountType
)


# --- Booking requests ---

class CustomerIn(BaseModel):
    full_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    notes: Optional[str] = None


class GuestsIn(BaseModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)


class RoomRequest(BaseModel):
    room_id: Optional[int] = None
    room_name: Optional[str] = None
    quantity: Optional[int] = None
    price_per_night: Optional[float] = Field(default=None, ge=0)
    taxes: Optional[float] = Field(default=None, ge=0)
    addons: List[str] = []


class ItemRequest(BaseModel):
    option_id: Optional[int] = None
    option_name: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[float] = Field(default=None, ge=0)
    price_per_day: Optional[float] = Field(default=None, ge=0)
    taxes: Optional[float] = Field(default=None, ge=0)


class BookingCreate(BaseModel):
    # Inferred from whichever listing id is present when omitted.
    service_type: Optional[ServiceType] = None

    stay_id: Optional[int] = None
    tour_id: Optional[int] = None
    adventure_id: Optional[int] = None
    vehicle_rental_id: Optional[int] = None

    check_in: Optional[datetime.date] = None
    check_out: Optional[datetime.date] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    pickup_date: Optional[datetime.date] = None
    dropoff_date: Optional[datetime.date] = None

    rooms: List[RoomRequest] = []
    items: List[ItemRequest] = []
    guests: GuestsIn = GuestsIn()

    # user_id will come from the JWT token when the caller is signed in
    customer: Optional[CustomerIn] = None
    customer_id: Optional[int] = None

    currency: str = settings.DEFAULT_CURRENCY
    fees: float = Field(default=0, ge=0)
    notes: Optional[str] = None
    source: str = "web"
    coupon_code: Optional[str] = None


class BookingUpdate(BaseModel):
    status: Optional[str] = None
    payment_status: Optional[str] = None
    reason: Optional[str] = None
    metadata: Optional[dict] = None


# --- Booking responses ---

class BookingLineRead(BaseModel):
    unit_id: Optional[int]
    unit_name: str
    quantity: int
    unit_price: float
    taxes: float
    nights: int
    total: float
    addons: List[str] = []
    details: dict = {}

    model_config = ConfigDict(from_attributes=True)


class BookingRead(BaseModel):
    id: int
    service_type: ServiceType
    listing_id: int
    vendor_id: int
    customer_id: Optional[int]
    customer_name: str
    customer_email: str
    customer_phone: Optional[str]
    start_date: datetime.date
    end_date: datetime.date
    nights: int
    adults: int
    children: int
    infants: int
    lines: List[BookingLineRead]
    currency: str
    subtotal: float
    taxes: float
    fees: float
    discount_amount: float
    coupon_code: Optional[str]
    total_amount: float
    status: BookingStatus
    payment_status: PaymentStatus
    source: str
    extra: dict = {}
    cancelled_at: Optional[datetime.datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by_role: Optional[str] = None
    completed_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime

    model_config = ConfigDict(from_attributes=True)


# --- Availability ---

class BookedRange(BaseModel):
    start: datetime.date
    end: datetime.date


class AvailabilityRead(BaseModel):
    service_type: ServiceType
    listing_id: int
    is_available: bool
    booked_ranges: List[BookedRange]
    available_unit_keys: List[str]


# --- Coupons ---

class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    discount_type: DiscountType
    discount_amount: float = Field(ge=0)
    min_purchase: float = Field(default=0, ge=0)
    max_discount: Optional[float] = Field(default=None, ge=0)
    start_date: Optional[datetime.datetime] = None
    expiry_date: datetime.datetime
    usage_limit: Optional[int] = Field(default=None, ge=1)
    is_active: bool = True


class CouponRead(BaseModel):
    id: int
    code: str
    discount_type: DiscountType
    discount_amount: float
    min_purchase: float
    max_discount: Optional[float]
    start_date: datetime.datetime
    expiry_date: datetime.datetime
    usage_limit: Optional[int]
    usage_count: int
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class CouponValidateRequest(BaseModel):
    code: Optional[str] = None
    subtotal: float = 0


class CouponValidateResult(BaseModel):
    id: int
    code: str
    discount_type: DiscountType
    discount_amount: float
    min_purchase: float
    applied_discount: float


# --- Listings ---

class UnitCreate(BaseModel):
    name: str
    price: float = Field(ge=0)
    taxes: float = Field(default=0, ge=0)
    capacity: int = Field(default=1, ge=1)
    available: int = Field(default=1, ge=0)
    details: dict[str, Any] = {}


class ListingCreate(BaseModel):
    service_type: ServiceType
    name: str
    category: Optional[str] = None
    currency: str = settings.DEFAULT_CURRENCY
    bnb_unit_type: Optional[str] = None
    bnb_price: Optional[float] = Field(default=None, ge=0)
    # Admins may create listings on behalf of a vendor.
    vendor_id: Optional[int] = None
    units: List[UnitCreate] = []


class UnitRead(BaseModel):
    id: int
    name: str
    price: float
    taxes: float
    capacity: int
    available: int
    details: dict = {}

    model_config = ConfigDict(from_attributes=True)


class ListingRead(BaseModel):
    id: int
    service_type: ServiceType
    vendor_id: int
    name: str
    category: Optional[str]
    currency: str
    is_active: bool
    bnb_unit_type: Optional[str]
    bnb_price: Optional[float]
    units: List[UnitRead]

    model_config = ConfigDict(from_attributes=True)

