from datetime import date

import pytest

from marketplace_bookings import availability, models

MAY_1 = date(2026, 5, 1)


def booking(start, end, units, status=models.BookingStatus.PENDING):
    """units: list of (unit_id, unit_name)"""
    b = models.Booking(start_date=start, end_date=end, status=status)
    for unit_id, unit_name in units:
        b.lines.append(models.BookingLine(unit_id=unit_id, unit_name=unit_name))
    return b


def listing(*units):
    db_listing = models.Listing(service_type=models.ServiceType.STAY, name="Pine View")
    for unit_id, name in units:
        db_listing.units.append(models.BookableUnit(id=unit_id, name=name))
    return db_listing


@pytest.mark.parametrize("existing, candidate, overlaps", [
    ((1, 5), (2, 3), True),    # inside
    ((3, 6), (1, 4), True),    # overlaps start
    ((1, 4), (3, 6), True),    # overlaps end
    ((2, 3), (1, 6), True),    # wraps
    ((1, 3), (3, 5), False),   # check-out day is next check-in
    ((3, 5), (1, 3), False),
])
def test_ranges_overlap(existing, candidate, overlaps):
    day = lambda n: date(2026, 5, n)
    assert availability.ranges_overlap(
        day(existing[0]), day(existing[1]), day(candidate[0]), day(candidate[1])
    ) is overlaps


def test_unit_key_prefers_id():
    assert availability.unit_key(7, "Deluxe") == "7"
    assert availability.unit_key(None, "Entire cottage") == "Entire cottage"
    assert availability.unit_key(None, "") is None


def test_occupied_keys_and_conflicting_names():
    bookings = [booking(MAY_1, date(2026, 5, 3), [(7, "Deluxe"), (None, "Tent")])]
    occupied = availability.occupied_unit_keys(bookings)
    assert occupied == {"7", "Tent"}

    requested = [
        models.BookingLine(unit_id=7, unit_name="Deluxe"),
        models.BookingLine(unit_id=8, unit_name="Suite"),
        models.BookingLine(unit_id=None, unit_name="Tent"),
    ]
    assert availability.find_conflicting_names(requested, occupied) == ["Deluxe", "Tent"]


def test_conflict_message_per_service_type():
    assert availability.conflict_message(models.ServiceType.STAY, ["Deluxe", "Suite"]) == (
        "The following rooms are already booked for these dates: Deluxe, Suite. "
        "Please choose different rooms or dates."
    )
    assert availability.conflict_message(models.ServiceType.ADVENTURE, ["Grade III run"]) == (
        "These adventure options are already booked for the selected dates: Grade III run."
    )


def test_summary_without_range_lists_every_unit():
    summary = availability.summarize_availability(
        listing((1, "Deluxe"), (2, "Suite")),
        [booking(date(2026, 5, 4), date(2026, 5, 6), [(1, "Deluxe")]),
         booking(MAY_1, date(2026, 5, 2), [(2, "Suite")])],
    )

    assert summary["is_available"] is True
    assert summary["available_unit_keys"] == ["1", "2"]
    assert [r["start"] for r in summary["booked_ranges"]] == [MAY_1, date(2026, 5, 4)]


def test_summary_with_range_excludes_occupied_units():
    db_listing = listing((1, "Deluxe"), (2, "Suite"))
    bookings = [booking(MAY_1, date(2026, 5, 3), [(1, "Deluxe")])]

    partly = availability.summarize_availability(db_listing, bookings, date(2026, 5, 2), date(2026, 5, 4))
    assert partly["is_available"] is True
    assert partly["available_unit_keys"] == ["2"]

    bookings.append(booking(date(2026, 5, 2), date(2026, 5, 5), [(2, "Suite")]))
    full = availability.summarize_availability(db_listing, bookings, date(2026, 5, 2), date(2026, 5, 4))
    assert full["is_available"] is False
    assert full["available_unit_keys"] == []

    later = availability.summarize_availability(db_listing, bookings, date(2026, 5, 5), date(2026, 5, 7))
    assert later["available_unit_keys"] == ["1", "2"]


def test_summary_for_listing_without_units():
    db_listing = listing()
    bookings = [booking(MAY_1, date(2026, 5, 3), [(None, "Entire cottage")])]

    assert availability.summarize_availability(db_listing, bookings, MAY_1, date(2026, 5, 2))["is_available"] is False
    assert availability.summarize_availability(db_listing, bookings, date(2026, 5, 3), date(2026, 5, 4))["is_available"] is True
