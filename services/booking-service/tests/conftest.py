from datetime import datetime, timezone

import pytest

from app.domain import Booking, BookingStatus
from app.lifecycle import BookingLifecycle
from app.store import InMemoryStore

FIXED_NOW = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


def build_booking(
    booking_id: str,
    status: BookingStatus,
    requester_id: str = "agency-a",
    dates=("2025-02-01",),
    provider_id: str = "provider-1",
    **extra,
) -> Booking:
    """Booking record built directly, bypassing the lifecycle."""
    return Booking(
        id=booking_id,
        status=status,
        provider_id=provider_id,
        requester_id=requester_id,
        project_id=f"project-{booking_id}",
        phase_id="phase-1",
        dates=list(dates),
        requested_at=FIXED_NOW,
        **extra,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def lifecycle(store):
    return BookingLifecycle(store, clock=fixed_clock)


@pytest.fixture
def make_booking(lifecycle):
    async def _make(
        request_type: str = "option",
        requester_id: str = "agency-a",
        dates=("2025-02-01",),
        provider_id: str = "provider-1",
        day_rate: float = 500,
        accept: bool = False,
    ) -> Booking:
        result = await lifecycle.create_booking(
            request_type=request_type,
            provider_id=provider_id,
            requester_id=requester_id,
            dates=list(dates),
            project_id=f"project-{requester_id}",
            phase_id="phase-1",
            rate_info={"day_rate": day_rate},
        )
        assert result.ok, result.error
        booking = result.value
        if accept:
            result = await lifecycle.accept_booking(booking.id)
            assert result.ok, result.error
            booking = result.value
        return booking

    return _make


@pytest.fixture
def seed(store):
    async def _seed(*bookings: Booking) -> list[Booking]:
        return await store.commit(list(bookings))

    return _seed
