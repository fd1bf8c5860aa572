import pytest

from app.domain import BookingStatus

from conftest import FIXED_NOW


@pytest.mark.asyncio
async def test_request_and_accept_reschedule(lifecycle, make_booking):
    booking = await make_booking(dates=("2025-02-01", "2025-02-02"), day_rate=300, accept=True)

    requested = await lifecycle.request_reschedule(booking.id, ["2025-02-12", "2025-02-10", "2025-02-11"])

    assert requested.ok
    reschedule = requested.value.reschedule
    assert reschedule.new_dates == ["2025-02-10", "2025-02-11", "2025-02-12"]
    assert reschedule.original_dates == ["2025-02-01", "2025-02-02"]
    assert reschedule.new_total_cost == 900
    assert reschedule.requested_at == FIXED_NOW
    assert reschedule.has_conflicts is False
    assert requested.value.dates == ["2025-02-01", "2025-02-02"]

    provider_notes = await lifecycle.list_notifications(role="provider")
    assert provider_notes[0].type == "reschedule_request"

    accepted = await lifecycle.accept_reschedule(booking.id)

    moved = accepted.value
    assert moved.dates == ["2025-02-10", "2025-02-11", "2025-02-12"]
    assert moved.total_cost == 900
    assert moved.reschedule is None
    assert moved.rescheduled_at == FIXED_NOW
    assert moved.status == BookingStatus.OPTION_CONFIRMED

    requester_notes = await lifecycle.list_notifications(role="requester")
    assert requester_notes[0].type == "reschedule_confirmed"


@pytest.mark.asyncio
async def test_reschedule_flat_rate_keeps_price(lifecycle):
    created = await lifecycle.create_booking(
        "fix", "provider-1", "agency-a", ["2025-02-01"], "project-1", "phase-1",
        {"rate_type": "flat", "flat_rate": 2000},
    )
    result = await lifecycle.request_reschedule(created.value.id, ["2025-02-03", "2025-02-04"])
    assert result.value.reschedule.new_total_cost == 2000


@pytest.mark.asyncio
async def test_decline_reschedule_restores_booking(lifecycle, make_booking):
    booking = await make_booking(accept=True)
    await lifecycle.request_reschedule(booking.id, ["2025-02-05"])

    result = await lifecycle.decline_reschedule(booking.id)

    assert result.value.reschedule is None
    assert result.value.dates == ["2025-02-01"]
    assert result.value.rescheduled_at is None
    assert (await lifecycle.list_notifications(role="requester"))[0].type == "reschedule_declined"


@pytest.mark.asyncio
async def test_withdraw_reschedule_notifies_provider(lifecycle, make_booking):
    booking = await make_booking()
    await lifecycle.request_reschedule(booking.id, ["2025-02-05"])

    result = await lifecycle.withdraw_reschedule(booking.id)

    assert result.value.reschedule is None
    assert result.value.status == BookingStatus.OPTION_PENDING
    assert (await lifecycle.list_notifications(role="provider"))[0].type == "reschedule_withdrawn"


@pytest.mark.asyncio
async def test_reschedule_commands_need_a_pending_request(lifecycle, make_booking):
    booking = await make_booking(accept=True)

    assert (await lifecycle.accept_reschedule(booking.id)).reason == "invalid_state"
    assert (await lifecycle.decline_reschedule(booking.id)).reason == "invalid_state"
    assert (await lifecycle.withdraw_reschedule(booking.id)).reason == "invalid_state"
    assert (await lifecycle.accept_reschedule("missing")).reason == "not_found"


@pytest.mark.asyncio
async def test_only_one_reschedule_at_a_time(lifecycle, make_booking):
    booking = await make_booking(accept=True)

    assert (await lifecycle.request_reschedule(booking.id, ["2025-02-05"])).ok
    again = await lifecycle.request_reschedule(booking.id, ["2025-02-06"])

    assert again.reason == "invalid_state"
    assert (await lifecycle.get_booking(booking.id)).reschedule.new_dates == ["2025-02-05"]


@pytest.mark.asyncio
async def test_reschedule_of_terminal_booking_is_rejected(lifecycle, make_booking):
    booking = await make_booking()
    await lifecycle.decline_booking(booking.id)

    assert (await lifecycle.request_reschedule(booking.id, ["2025-02-05"])).reason == "invalid_state"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "new_dates",
    [[], ["2024-12-31"], ["2025-02-01"], ["not-a-day"], "2025-02-05"],
)
async def test_reschedule_date_validation(lifecycle, make_booking, new_dates):
    booking = await make_booking(accept=True)

    result = await lifecycle.request_reschedule(booking.id, new_dates)

    assert result.reason == "validation_error"
    assert (await lifecycle.get_booking(booking.id)).reschedule is None


@pytest.mark.asyncio
async def test_soft_conflicts_are_recorded(lifecycle, make_booking):
    booking = await make_booking(requester_id="agency-a", accept=True)
    pending = await make_booking(requester_id="agency-b", dates=("2025-02-05",))
    option = await make_booking(requester_id="agency-c", dates=("2025-02-06",), accept=True)

    result = await lifecycle.request_reschedule(booking.id, ["2025-02-05", "2025-02-06", "2025-02-07"])

    reschedule = result.value.reschedule
    assert reschedule.has_conflicts is True
    assert reschedule.has_blocking_conflicts is False
    by_id = {c.booking_id: c for c in reschedule.conflicts}
    assert set(by_id) == {pending.id, option.id}
    assert by_id[pending.id].dates == ["2025-02-05"]
    assert not any(c.blocking for c in reschedule.conflicts)

    provider_note = (await lifecycle.list_notifications(role="provider"))[0]
    assert "overlaps other requests" in provider_note.message

    assert (await lifecycle.accept_reschedule(booking.id)).ok


@pytest.mark.asyncio
async def test_blocking_conflict_is_flagged_but_provider_may_accept(lifecycle, make_booking):
    booking = await make_booking(requester_id="agency-a", accept=True)
    fixed = await make_booking(request_type="fix", requester_id="agency-b", dates=("2025-02-05",), accept=True)

    requested = await lifecycle.request_reschedule(booking.id, ["2025-02-05"])

    assert requested.ok
    reschedule = requested.value.reschedule
    assert reschedule.has_blocking_conflicts is True
    assert reschedule.conflicts[0].booking_id == fixed.id
    assert reschedule.conflicts[0].blocking is True

    provider_note = (await lifecycle.list_notifications(role="provider"))[0]
    assert "overlaps a fix booking" in provider_note.message

    accepted = await lifecycle.accept_reschedule(booking.id)
    assert accepted.ok
    assert accepted.value.dates == ["2025-02-05"]
    assert (await lifecycle.get_booking(fixed.id)).status == BookingStatus.FIX_CONFIRMED


@pytest.mark.asyncio
async def test_own_dates_never_conflict(lifecycle, make_booking):
    booking = await make_booking(dates=("2025-02-01", "2025-02-02"), accept=True)

    result = await lifecycle.request_reschedule(booking.id, ["2025-02-02", "2025-02-03"])

    assert result.value.reschedule.conflicts == []
    assert result.value.reschedule.has_conflicts is False


@pytest.mark.asyncio
async def test_terminal_transition_clears_reschedule(lifecycle, make_booking):
    booking = await make_booking(accept=True)
    await lifecycle.request_reschedule(booking.id, ["2025-02-05"])

    cancelled = await lifecycle.cancel_booking(booking.id, "project dropped", "provider")

    assert cancelled.value.status == BookingStatus.CANCELLED
    assert cancelled.value.reschedule is None
    assert await lifecycle.reschedule_requests_count("provider-1") == 0


@pytest.mark.asyncio
async def test_pending_reschedule_survives_option_to_fix(lifecycle, make_booking):
    booking = await make_booking(accept=True)
    await lifecycle.request_reschedule(booking.id, ["2025-02-05"])

    converted = await lifecycle.convert_option_to_fix(booking.id)

    assert converted.value.status == BookingStatus.FIX_CONFIRMED
    assert converted.value.reschedule.new_dates == ["2025-02-05"]


@pytest.mark.asyncio
async def test_reschedule_onto_fix_open_day(lifecycle, make_booking):
    await make_booking(request_type="fix", requester_id="agency-a", dates=("2025-02-01",), accept=True)
    await lifecycle.toggle_open_for_more("provider-1", "2025-02-01")
    option = await make_booking(requester_id="agency-b", dates=("2025-02-05",), accept=True)

    view = await lifecycle.get_day_status("provider-1", "2025-02-01", "agency-b")
    assert view.status == "available"
    assert view.bookable is True

    requested = await lifecycle.request_reschedule(option.id, ["2025-02-01"])
    assert requested.value.reschedule.has_blocking_conflicts is True

    accepted = await lifecycle.accept_reschedule(option.id)

    assert accepted.ok
    assert accepted.value.dates == ["2025-02-01"]
    assert accepted.value.reschedule is None
    provider_view = await lifecycle.get_day_status("provider-1", "2025-02-01")
    assert provider_view.status == "fix-open"
    assert [b.id for b in await lifecycle.get_overlapping_bookings("provider-1", ["2025-02-01"])] == [option.id]
