from sqlalchemy import delete, select, update

from .domain import TERMINAL_STATUSES, Booking, DayBlock, Notification
from .errors import ConstraintError, StaleWriteError
from .models import BookingRow, DayBlockRow, NotificationRow, OpenForMoreRow
from .resolver import DaySnapshot
from .store import BookingStore

bookings_table = BookingRow.__table__
notifications_table = NotificationRow.__table__

_TERMINAL = [s.value for s in TERMINAL_STATUSES]


def _to_booking(row: BookingRow) -> Booking:
    data = {c.name: getattr(row, c.name) for c in bookings_table.columns}
    return Booking.model_validate(data)


def _booking_values(booking: Booking) -> dict:
    data = booking.model_dump(exclude={"reschedule", "version"})
    data["status"] = booking.status.value
    data["rate_type"] = booking.rate_type.value
    data["cancelled_by"] = booking.cancelled_by.value if booking.cancelled_by else None
    data["reschedule"] = booking.reschedule.model_dump(mode="json") if booking.reschedule else None
    return data


def _to_notification(row: NotificationRow) -> Notification:
    data = {c.name: getattr(row, c.name) for c in notifications_table.columns if c.name != "seq"}
    return Notification.model_validate(data)


def _notification_row(notification: Notification) -> NotificationRow:
    data = notification.model_dump()
    data["for_role"] = notification.for_role.value
    return NotificationRow(**data)


class SqlStore(BookingStore):
    """
    SQLAlchemy-backed store. Each call runs in its own transaction; booking
    updates are conditional on the version that was read, so a write based on
    a stale read is rejected instead of silently overwriting.
    """

    def __init__(self, session_factory, engine=None):
        self.SessionLocal = session_factory
        self.engine = engine

    async def close(self):
        if self.engine is not None:
            await self.engine.dispose()

    async def _active_on(self, db, provider_id: str, day: str) -> list[Booking]:
        res = await db.execute(
            select(BookingRow).where(
                BookingRow.provider_id == provider_id,
                BookingRow.status.notin_(_TERMINAL),
            )
        )
        bookings = [_to_booking(row) for row in res.scalars().all()]
        return [b for b in bookings if day in b.dates]

    async def get_booking(self, booking_id: str) -> Booking | None:
        async with self.SessionLocal() as db:
            row = await db.get(BookingRow, booking_id)
            return _to_booking(row) if row else None

    async def list_bookings(self, provider_id=None, requester_id=None) -> list[Booking]:
        stmt = select(BookingRow).order_by(BookingRow.requested_at, BookingRow.id)
        if provider_id is not None:
            stmt = stmt.where(BookingRow.provider_id == provider_id)
        if requester_id is not None:
            stmt = stmt.where(BookingRow.requester_id == requester_id)

        async with self.SessionLocal() as db:
            res = await db.execute(stmt)
            return [_to_booking(row) for row in res.scalars().all()]

    async def day_snapshot(self, provider_id: str, day: str) -> DaySnapshot:
        async with self.SessionLocal() as db:
            async with db.begin():
                bookings = await self._active_on(db, provider_id, day)
                block = await db.get(DayBlockRow, (provider_id, day))
                open_row = await db.get(OpenForMoreRow, (provider_id, day))

        return DaySnapshot(
            provider_id=provider_id,
            date=day,
            bookings=bookings,
            block=DayBlock(provider_id=block.provider_id, date=block.date, type=block.type) if block else None,
            open_for_more=open_row is not None,
        )

    async def commit(self, bookings=(), notifications=()) -> list[Booking]:
        saved = []
        async with self.SessionLocal() as db:
            async with db.begin():
                for booking in bookings:
                    values = _booking_values(booking)
                    if booking.version == 0:
                        db.add(BookingRow(**values, version=1))
                    else:
                        res = await db.execute(
                            update(bookings_table)
                            .where(
                                bookings_table.c.id == booking.id,
                                bookings_table.c.version == booking.version,
                            )
                            .values(**values, version=booking.version + 1)
                        )
                        if res.rowcount != 1:
                            raise StaleWriteError(
                                "Booking was modified concurrently",
                                booking_id=booking.id,
                                expected=booking.version,
                            )
                    saved.append(booking.model_copy(update={"version": booking.version + 1}, deep=True))

                for notification in notifications:
                    db.add(_notification_row(notification))
        return saved

    async def add_day_block(self, block: DayBlock) -> DayBlock:
        async with self.SessionLocal() as db:
            async with db.begin():
                active = await self._active_on(db, block.provider_id, block.date)
                if active:
                    raise ConstraintError(
                        "Day has active bookings; resolve them before blocking",
                        date=block.date,
                        booking_ids=[b.id for b in active],
                    )
                await db.merge(DayBlockRow(provider_id=block.provider_id, date=block.date, type=block.type.value))
        return block

    async def remove_day_block(self, provider_id: str, day: str) -> bool:
        async with self.SessionLocal() as db:
            async with db.begin():
                res = await db.execute(
                    delete(DayBlockRow.__table__).where(
                        DayBlockRow.__table__.c.provider_id == provider_id,
                        DayBlockRow.__table__.c.date == day,
                    )
                )
                return res.rowcount > 0

    async def toggle_open_for_more(self, provider_id: str, day: str) -> bool:
        async with self.SessionLocal() as db:
            async with db.begin():
                row = await db.get(OpenForMoreRow, (provider_id, day))
                if row:
                    await db.delete(row)
                    return False
                db.add(OpenForMoreRow(provider_id=provider_id, date=day))
                return True

    async def list_notifications(self, role=None, recipient_id=None, unread_only=False) -> list[Notification]:
        stmt = select(NotificationRow).order_by(NotificationRow.seq.desc())
        if role is not None:
            stmt = stmt.where(NotificationRow.for_role == role.value)
        if recipient_id is not None:
            stmt = stmt.where(NotificationRow.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(NotificationRow.read.is_(False))

        async with self.SessionLocal() as db:
            res = await db.execute(stmt)
            return [_to_notification(row) for row in res.scalars().all()]

    async def mark_notifications_read(self, notification_ids) -> int:
        ids = list(notification_ids)
        if not ids:
            return 0
        async with self.SessionLocal() as db:
            async with db.begin():
                res = await db.execute(
                    update(notifications_table)
                    .where(notifications_table.c.id.in_(ids))
                    .values(read=True)
                )
                return res.rowcount
