from abc import ABC, abstractmethod

from .domain import Booking, DayBlock, Notification, Role, is_pending
from .errors import ConstraintError, StaleWriteError
from .resolver import DaySnapshot


class BookingStore(ABC):
    """
    Repository behind the lifecycle manager. Implementations must make
    ``commit`` all-or-nothing and reject a booking whose ``version`` no longer
    matches the stored one.
    """

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Booking | None: ...

    @abstractmethod
    async def list_bookings(
        self, provider_id: str | None = None, requester_id: str | None = None
    ) -> list[Booking]: ...

    @abstractmethod
    async def day_snapshot(self, provider_id: str, day: str) -> DaySnapshot: ...

    @abstractmethod
    async def commit(self, bookings: list[Booking] = (), notifications: list[Notification] = ()) -> list[Booking]:
        """Persist booking changes and their notifications together. Returns the stored bookings."""

    @abstractmethod
    async def add_day_block(self, block: DayBlock) -> DayBlock:
        """Create or replace a block. Raises ConstraintError if the day has active bookings."""

    @abstractmethod
    async def remove_day_block(self, provider_id: str, day: str) -> bool: ...

    @abstractmethod
    async def toggle_open_for_more(self, provider_id: str, day: str) -> bool: ...

    @abstractmethod
    async def list_notifications(
        self,
        role: Role | None = None,
        recipient_id: str | None = None,
        unread_only: bool = False,
    ) -> list[Notification]: ...

    @abstractmethod
    async def mark_notifications_read(self, notification_ids: list[str]) -> int:
        """Mark the given notifications read. Returns how many of the ids exist."""

    async def close(self):
        """Release connections held by the store."""


def _active_on(bookings, provider_id: str, day: str) -> list[Booking]:
    return [b for b in bookings if b.provider_id == provider_id and b.occupies(day)]


def _matches_notification(n: Notification, role, recipient_id, unread_only) -> bool:
    if role is not None and n.for_role != role:
        return False
    if recipient_id is not None and n.recipient_id != recipient_id:
        return False
    if unread_only and n.read:
        return False
    return True


class InMemoryStore(BookingStore):
    """
    Process-local store. None of the methods await between reading and writing
    their state, so under asyncio each call is atomic with respect to every
    other reader and writer.
    """

    def __init__(self):
        self._bookings: dict[str, Booking] = {}
        self._blocks: dict[tuple[str, str], DayBlock] = {}
        self._open_for_more: set[tuple[str, str]] = set()
        self._notifications: list[Notification] = []

    async def get_booking(self, booking_id: str) -> Booking | None:
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def list_bookings(self, provider_id=None, requester_id=None) -> list[Booking]:
        return [
            b.model_copy(deep=True)
            for b in self._bookings.values()
            if (provider_id is None or b.provider_id == provider_id)
            and (requester_id is None or b.requester_id == requester_id)
        ]

    async def day_snapshot(self, provider_id: str, day: str) -> DaySnapshot:
        block = self._blocks.get((provider_id, day))
        return DaySnapshot(
            provider_id=provider_id,
            date=day,
            bookings=[b.model_copy(deep=True) for b in _active_on(self._bookings.values(), provider_id, day)],
            block=block.model_copy() if block else None,
            open_for_more=(provider_id, day) in self._open_for_more,
        )

    async def commit(self, bookings=(), notifications=()) -> list[Booking]:
        # validate every version first so a failure leaves nothing applied
        for booking in bookings:
            stored = self._bookings.get(booking.id)
            stored_version = stored.version if stored else 0
            if stored is None and booking.version != 0:
                raise StaleWriteError("Booking no longer exists", booking_id=booking.id)
            if stored is not None and stored_version != booking.version:
                raise StaleWriteError(
                    "Booking was modified concurrently",
                    booking_id=booking.id,
                    expected=booking.version,
                    actual=stored_version,
                )

        saved = []
        for booking in bookings:
            stored = booking.model_copy(deep=True)
            stored.version = booking.version + 1
            self._bookings[stored.id] = stored
            saved.append(stored.model_copy(deep=True))

        # newest first
        for notification in notifications:
            self._notifications.insert(0, notification.model_copy())
        return saved

    async def add_day_block(self, block: DayBlock) -> DayBlock:
        active = _active_on(self._bookings.values(), block.provider_id, block.date)
        if active:
            raise ConstraintError(
                "Day has active bookings; resolve them before blocking",
                date=block.date,
                booking_ids=[b.id for b in active],
            )
        self._blocks[(block.provider_id, block.date)] = block.model_copy()
        return block

    async def remove_day_block(self, provider_id: str, day: str) -> bool:
        return self._blocks.pop((provider_id, day), None) is not None

    async def toggle_open_for_more(self, provider_id: str, day: str) -> bool:
        key = (provider_id, day)
        if key in self._open_for_more:
            self._open_for_more.discard(key)
            return False
        self._open_for_more.add(key)
        return True

    async def list_notifications(self, role=None, recipient_id=None, unread_only=False) -> list[Notification]:
        return [
            n.model_copy()
            for n in self._notifications
            if _matches_notification(n, role, recipient_id, unread_only)
        ]

    async def mark_notifications_read(self, notification_ids) -> int:
        wanted = set(notification_ids)
        matched = 0
        for n in self._notifications:
            if n.id in wanted:
                n.read = True
                matched += 1
        return matched


def count_pending(bookings: list[Booking]) -> int:
    return sum(1 for b in bookings if is_pending(b.status))


def count_reschedule_requests(bookings: list[Booking]) -> int:
    return sum(1 for b in bookings if b.reschedule is not None)
