from .domain import (
    Booking,
    BookingStatus,
    RescheduleConflict,
    is_pending,
)


def _overlaps(booking: Booking, provider_id: str, days: set[str], exclude_booking_id: str | None) -> bool:
    if booking.provider_id != provider_id or booking.id == exclude_booking_id:
        return False
    return any(d in days for d in booking.dates)


def find_overlapping(
    bookings: list[Booking],
    provider_id: str,
    dates,
    exclude_booking_id: str | None = None,
) -> list[Booking]:
    """
    Pending or option_confirmed bookings of ``provider_id`` that share at least
    one day with ``dates``. Fix-confirmed and terminal bookings are not returned.
    """
    days = set(dates)
    return [
        b for b in bookings
        if (is_pending(b.status) or b.status == BookingStatus.OPTION_CONFIRMED)
        and _overlaps(b, provider_id, days, exclude_booking_id)
    ]


def find_shadowed_options(
    bookings: list[Booking],
    fixed: Booking,
) -> list[Booking]:
    """Option-confirmed competitors overtaken by ``fixed`` becoming fix_confirmed."""
    overlapping = find_overlapping(bookings, fixed.provider_id, fixed.dates, exclude_booking_id=fixed.id)
    return [b for b in overlapping if b.status == BookingStatus.OPTION_CONFIRMED]


def classify_reschedule_conflicts(
    bookings: list[Booking],
    booking: Booking,
    new_dates: list[str],
) -> list[RescheduleConflict]:
    """
    Every other active booking of the provider on ``new_dates``. A fix_confirmed
    overlap is blocking; anything else is a soft warning.
    """
    days = set(new_dates)
    conflicts = []
    for other in bookings:
        if not other.is_active or not _overlaps(other, booking.provider_id, days, booking.id):
            continue
        conflicts.append(
            RescheduleConflict(
                booking_id=other.id,
                status=other.status,
                dates=other.overlapping_dates(days),
                blocking=other.status == BookingStatus.FIX_CONFIRMED,
            )
        )
    return conflicts
