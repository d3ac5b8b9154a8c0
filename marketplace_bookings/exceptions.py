from fastapi import HTTPException, status


class BookingError(Exception):
    """Base class for errors the API reports to the caller as-is."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_detail
        super().__init__(self.message)

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class BookingValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid booking request."


class ListingNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Listing not found."


class BookingNotFoundError(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Booking not found."


class PermissionDeniedError(BookingError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Unauthorized"


class BookingConflictError(BookingError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Booking conflict."

    def __init__(self, message: str, unit_names: list[str]):
        super().__init__(message)
        self.unit_names = unit_names


class CouponError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid coupon."


class CouponNotFoundError(CouponError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Invalid or inactive coupon code"


class UnitNotFoundError(LookupError):
    """
    A requested room/option does not exist on the listing.
    Not a BookingError: it falls through to the generic 500 handler.
    """
