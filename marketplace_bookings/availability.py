"""
Overlap rules for bookable units.

Two ranges overlap when ``existing.start < candidate.end`` and
``existing.end > candidate.start`` (half-open, so a check-out on the day of
the next check-in is not a conflict). Units are matched by id and, when a
booking line carries no id, by name.
"""
import datetime
from typing import Iterable, Optional

from .models import Booking, Listing, ServiceType

CONFLICT_MESSAGES = {
    ServiceType.STAY: (
        "The following rooms are already booked for these dates: {names}. "
        "Please choose different rooms or dates."
    ),
    ServiceType.TOUR: "The following tour options are already booked for these dates: {names}.",
    ServiceType.ADVENTURE: "These adventure options are already booked for the selected dates: {names}.",
    ServiceType.VEHICLE: "These vehicles are already booked for the selected dates: {names}.",
}


def unit_key(unit_id: Optional[int], unit_name: Optional[str]) -> Optional[str]:
    if unit_id is not None:
        return str(unit_id)
    return unit_name or None


def ranges_overlap(
    existing_start: datetime.date,
    existing_end: datetime.date,
    start: datetime.date,
    end: datetime.date,
) -> bool:
    return existing_start < end and existing_end > start


def occupied_unit_keys(bookings: Iterable[Booking]) -> set[str]:
    keys = set()
    for booking in bookings:
        for line in booking.lines:
            key = unit_key(line.unit_id, line.unit_name)
            if key:
                keys.add(key)
    return keys


def find_conflicting_names(requested, occupied: set[str]) -> list[str]:
    """
    Returns the names of requested lines whose unit is already occupied.
    `requested` is any iterable of objects with unit_id / unit_name.
    """
    names = []
    for line in requested:
        key = unit_key(line.unit_id, line.unit_name)
        if key and key in occupied:
            names.append(line.unit_name)
    return names


def conflict_message(service_type: ServiceType, names: list[str]) -> str:
    return CONFLICT_MESSAGES[ServiceType(service_type)].format(names=", ".join(names))


def listing_unit_keys(listing: Listing) -> list[str]:
    keys = []
    for unit in listing.units:
        key = unit_key(unit.id, unit.name)
        if key:
            keys.append(key)
    return keys


def summarize_availability(
    listing: Listing,
    bookings: list[Booking],
    start: Optional[datetime.date] = None,
    end: Optional[datetime.date] = None,
) -> dict:
    """
    Builds the availability view of a listing from its non-cancelled bookings.

    Without a range every unit is reported available. With a range, the
    listing is available while at least one unit is free; a listing without
    units is available only if no overlapping booking holds a unit.
    """
    booked_ranges = [
        {"start": b.start_date, "end": b.end_date}
        for b in sorted(bookings, key=lambda b: b.start_date)
        if b.start_date and b.end_date
    ]
    option_keys = listing_unit_keys(listing)

    if start is None or end is None:
        return {
            "is_available": True,
            "booked_ranges": booked_ranges,
            "available_unit_keys": option_keys,
        }

    overlapping = [b for b in bookings if ranges_overlap(b.start_date, b.end_date, start, end)]
    occupied = occupied_unit_keys(overlapping)
    available_keys = [key for key in option_keys if key not in occupied]

    if option_keys:
        is_available = len(available_keys) > 0
    else:
        is_available = len(occupied) == 0

    return {
        "is_available": is_available,
        "booked_ranges": booked_ranges,
        "available_unit_keys": available_keys,
    }
