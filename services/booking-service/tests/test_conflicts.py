from app.conflicts import classify_reschedule_conflicts, find_overlapping, find_shadowed_options
from app.domain import BookingStatus

from conftest import build_booking

PROVIDER = "provider-1"


def test_find_overlapping_returns_pending_and_confirmed_options_only():
    bookings = [
        build_booking("op", BookingStatus.OPTION_PENDING, dates=("2025-02-01",)),
        build_booking("fp", BookingStatus.FIX_PENDING, dates=("2025-02-02",)),
        build_booking("oc", BookingStatus.OPTION_CONFIRMED, dates=("2025-02-01", "2025-02-03")),
        build_booking("fc", BookingStatus.FIX_CONFIRMED, dates=("2025-02-01",)),
        build_booking("dec", BookingStatus.DECLINED, dates=("2025-02-01",)),
        build_booking("far", BookingStatus.OPTION_PENDING, dates=("2025-03-01",)),
        build_booking("other", BookingStatus.OPTION_PENDING, provider_id="provider-2"),
    ]

    found = find_overlapping(bookings, PROVIDER, ["2025-02-01", "2025-02-02"])

    assert {b.id for b in found} == {"op", "fp", "oc"}


def test_find_overlapping_excludes_given_booking():
    bookings = [
        build_booking("self", BookingStatus.OPTION_PENDING),
        build_booking("rival", BookingStatus.OPTION_PENDING, requester_id="agency-b"),
    ]
    found = find_overlapping(bookings, PROVIDER, ["2025-02-01"], exclude_booking_id="self")
    assert [b.id for b in found] == ["rival"]


def test_shadowed_options_are_confirmed_options_sharing_a_day():
    fixed = build_booking("fixed", BookingStatus.FIX_CONFIRMED, dates=("2025-02-01", "2025-02-02"))
    bookings = [
        fixed,
        build_booking("opt-b", BookingStatus.OPTION_CONFIRMED, requester_id="agency-b", dates=("2025-02-02",)),
        build_booking("pend-c", BookingStatus.OPTION_PENDING, requester_id="agency-c"),
        build_booking("opt-d", BookingStatus.OPTION_CONFIRMED, requester_id="agency-d", dates=("2025-02-05",)),
    ]
    assert [b.id for b in find_shadowed_options(bookings, fixed)] == ["opt-b"]


def test_reschedule_conflicts_flag_fix_bookings_as_blocking():
    moving = build_booking("moving", BookingStatus.OPTION_CONFIRMED, dates=("2025-02-01",))
    bookings = [
        moving,
        build_booking("soft", BookingStatus.OPTION_PENDING, requester_id="agency-b", dates=("2025-02-10",)),
        build_booking("hard", BookingStatus.FIX_CONFIRMED, requester_id="agency-c", dates=("2025-02-11", "2025-02-20")),
        build_booking("gone", BookingStatus.CANCELLED, requester_id="agency-d", dates=("2025-02-10",)),
    ]

    conflicts = classify_reschedule_conflicts(bookings, moving, ["2025-02-10", "2025-02-11"])
    by_id = {c.booking_id: c for c in conflicts}

    assert set(by_id) == {"soft", "hard"}
    assert by_id["soft"].blocking is False
    assert by_id["hard"].blocking is True
    assert by_id["hard"].dates == ["2025-02-11"]


def test_reschedule_conflicts_ignore_the_booking_itself():
    moving = build_booking("moving", BookingStatus.FIX_CONFIRMED, dates=("2025-02-01", "2025-02-02"))
    assert classify_reschedule_conflicts([moving], moving, ["2025-02-02", "2025-02-03"]) == []
