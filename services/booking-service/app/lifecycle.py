"""
Booking Lifecycle Manager.

Every mutating command runs under the in-flight guard for the booking it
touches, reads through the store, applies the state change on a copy and
commits the booking together with the notifications that describe it.
Expected rule violations come back as a failed ``CommandResult``; anything
else propagates.
"""
from datetime import datetime, timezone
from typing import Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from . import notifications as notify
from .conflicts import classify_reschedule_conflicts, find_overlapping, find_shadowed_options
from .dates import normalize_days, parse_day
from .domain import (
    ACCEPT_TARGET,
    FORCE_DECLINABLE,
    BlockType,
    Booking,
    BookingStatus,
    DayBlock,
    Notification,
    RateInfo,
    RequestType,
    Reschedule,
    Role,
    can_transition,
    compute_total_cost,
)
from .errors import (
    BookingError,
    CommandResult,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from .guard import InFlightGuard
from .logger import logger
from .resolver import DayStatus, resolve_day
from .store import BookingStore, count_pending, count_reschedule_requests


def booking_key(booking_id: str) -> str:
    return f"booking:{booking_id}"


def day_key(provider_id: str, day: str) -> str:
    return f"day:{provider_id}:{day}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _role(value, field: str) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Invalid role: {value!r}", field=field)


def _coerce_rate_info(rate_info) -> RateInfo:
    if rate_info is None:
        return RateInfo()
    if isinstance(rate_info, RateInfo):
        return rate_info
    try:
        return RateInfo.model_validate(rate_info)
    except PydanticValidationError as e:
        raise ValidationError("Invalid rate info", errors=e.errors(include_url=False))


def _transition(booking: Booking, target: BookingStatus):
    if not can_transition(booking.status, target):
        raise InvalidStateError(
            f"Booking {booking.id} cannot move from {booking.status.value} to {target.value}",
            status=booking.status.value,
            target=target.value,
        )
    booking.status = target
    if target in (BookingStatus.DECLINED, BookingStatus.WITHDRAWN, BookingStatus.CANCELLED):
        # an outstanding proposal dies with the booking
        booking.reschedule = None


class BookingLifecycle:
    def __init__(
        self,
        store: BookingStore,
        guard=None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.guard = guard or InFlightGuard()
        self.clock = clock or _utcnow

    def today(self):
        return self.clock().date()

    async def _execute(self, command: str, keys: tuple[str, ...], handler: Callable[[], Awaitable]) -> CommandResult:
        try:
            if keys:
                async with self.guard.hold(*keys):
                    value = await handler()
            else:
                value = await handler()
        except BookingError as e:
            logger.warning(f"{command} rejected ({e.code}): {e.message}")
            return CommandResult.failure(e)
        except Exception:
            logger.exception(f"{command} failed unexpectedly")
            raise

        logger.info(f"{command} ok")
        return CommandResult.success(value)

    async def _load(self, booking_id: str) -> Booking:
        booking = await self.store.get_booking(booking_id)
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)
        return booking

    async def _provider_bookings(self, provider_id: str) -> list[Booking]:
        return await self.store.list_bookings(provider_id=provider_id)

    async def _save(self, booking: Booking, notifications: list[Notification]) -> Booking:
        saved = await self.store.commit([booking], notifications)
        return saved[0]

    # ---------------- booking commands ----------------

    async def create_booking(
        self,
        request_type,
        provider_id,
        requester_id,
        dates,
        project_id,
        phase_id,
        rate_info=None,
    ) -> CommandResult:
        async def handler():
            provider = _require(provider_id, "provider_id")
            requester = _require(requester_id, "requester_id")
            project = _require(project_id, "project_id")
            phase = _require(phase_id, "phase_id")
            try:
                kind = RequestType(request_type)
            except ValueError:
                raise ValidationError(f"Invalid request type: {request_type!r}", request_type=repr(request_type))

            days = normalize_days(dates, today=self.today())
            rate = _coerce_rate_info(rate_info)
            total = rate.total_cost
            if total is None:
                total = compute_total_cost(rate.rate_type, rate.day_rate, rate.flat_rate, len(days))

            now = self.clock()
            booking = Booking(
                status=BookingStatus.FIX_PENDING if kind == RequestType.FIX else BookingStatus.OPTION_PENDING,
                provider_id=provider,
                requester_id=requester,
                project_id=project,
                phase_id=phase,
                dates=days,
                rate_type=rate.rate_type,
                day_rate=rate.day_rate,
                flat_rate=rate.flat_rate,
                total_cost=total,
                requested_at=now,
            )
            return await self._save(booking, [notify.new_request(booking, now)])

        return await self._execute("create_booking", (), handler)

    async def accept_booking(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            target = ACCEPT_TARGET.get(booking.status)
            if target is None:
                raise InvalidStateError(
                    f"Only pending requests can be accepted, booking is {booking.status.value}",
                    status=booking.status.value,
                )
            _transition(booking, target)
            now = self.clock()
            booking.confirmed_at = now

            notifications = [notify.confirmed(booking, now)]
            if target == BookingStatus.FIX_CONFIRMED:
                shadowed = find_shadowed_options(await self._provider_bookings(booking.provider_id), booking)
                notifications.extend(notify.overtaken(o, now) for o in shadowed)
            return await self._save(booking, notifications)

        return await self._execute(f"accept_booking {booking_id}", (booking_key(booking_id),), handler)

    async def decline_booking(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            _transition(booking, BookingStatus.DECLINED)
            now = self.clock()
            return await self._save(booking, [notify.declined(booking, now)])

        return await self._execute(f"decline_booking {booking_id}", (booking_key(booking_id),), handler)

    async def withdraw_booking(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            _transition(booking, BookingStatus.WITHDRAWN)
            now = self.clock()
            return await self._save(booking, [notify.withdrawn(booking, now)])

        return await self._execute(f"withdraw_booking {booking_id}", (booking_key(booking_id),), handler)

    async def cancel_booking(self, booking_id: str, reason, cancelled_by) -> CommandResult:
        async def handler():
            role = _role(cancelled_by, "cancelled_by")
            if not isinstance(reason, str) or not reason.strip():
                raise ValidationError("A cancellation reason is required", field="reason")
            cleaned = reason.strip()

            booking = await self._load(booking_id)
            _transition(booking, BookingStatus.CANCELLED)
            now = self.clock()
            booking.cancelled_at = now
            booking.cancelled_by = role
            booking.cancel_reason = cleaned
            return await self._save(booking, [notify.cancelled(booking, now)])

        return await self._execute(f"cancel_booking {booking_id}", (booking_key(booking_id),), handler)

    async def convert_option_to_fix(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            if booking.status != BookingStatus.OPTION_CONFIRMED:
                raise InvalidStateError(
                    f"Only confirmed options can be converted, booking is {booking.status.value}",
                    status=booking.status.value,
                )
            _transition(booking, BookingStatus.FIX_CONFIRMED)
            now = self.clock()
            booking.fixed_at = now

            notifications = notify.converted_to_fix(booking, now)
            # competitors keep their status, they are only told
            shadowed = find_shadowed_options(await self._provider_bookings(booking.provider_id), booking)
            notifications.extend(notify.overtaken(o, now) for o in shadowed)
            return await self._save(booking, notifications)

        return await self._execute(f"convert_option_to_fix {booking_id}", (booking_key(booking_id),), handler)

    async def decline_overlapping_bookings(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            if not booking.is_active:
                raise InvalidStateError(
                    f"Booking {booking_id} is {booking.status.value}",
                    status=booking.status.value,
                )
            competitors = [
                b for b in find_overlapping(
                    await self._provider_bookings(booking.provider_id),
                    booking.provider_id,
                    booking.dates,
                    exclude_booking_id=booking.id,
                )
                if b.status in FORCE_DECLINABLE
            ]
            if not competitors:
                return []

            async with self.guard.hold(*(booking_key(b.id) for b in competitors)):
                now = self.clock()
                notifications = []
                for competitor in competitors:
                    competitor.status = BookingStatus.DECLINED
                    competitor.reschedule = None
                    notifications.append(notify.declined(competitor, now, conflict=True))
                return await self.store.commit(competitors, notifications)

        return await self._execute(f"decline_overlapping_bookings {booking_id}", (booking_key(booking_id),), handler)

    # ---------------- reschedule sub-flow ----------------

    async def request_reschedule(self, booking_id: str, new_dates) -> CommandResult:
        async def handler():
            booking = await self._load(booking_id)
            if not booking.is_active:
                raise InvalidStateError(
                    f"Booking {booking_id} is {booking.status.value}", status=booking.status.value
                )
            if booking.reschedule is not None:
                raise InvalidStateError(f"Booking {booking_id} already has a reschedule request pending")

            days = normalize_days(new_dates, today=self.today())
            if days == booking.dates:
                raise ValidationError("New dates are the same as the current dates")

            conflicts = classify_reschedule_conflicts(
                await self._provider_bookings(booking.provider_id), booking, days
            )
            now = self.clock()
            booking.reschedule = Reschedule(
                new_dates=days,
                original_dates=list(booking.dates),
                requested_at=now,
                new_total_cost=compute_total_cost(booking.rate_type, booking.day_rate, booking.flat_rate, len(days)),
                conflicts=conflicts,
                has_conflicts=bool(conflicts),
                has_blocking_conflicts=any(c.blocking for c in conflicts),
            )
            return await self._save(booking, [notify.reschedule_requested(booking, now)])

        return await self._execute(f"request_reschedule {booking_id}", (booking_key(booking_id),), handler)

    async def _load_with_reschedule(self, booking_id: str) -> Booking:
        booking = await self._load(booking_id)
        if booking.reschedule is None:
            raise InvalidStateError(f"Booking {booking_id} has no pending reschedule request")
        return booking

    async def accept_reschedule(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load_with_reschedule(booking_id)
            reschedule = booking.reschedule
            # conflicts were reported with the request; the provider decides
            now = self.clock()
            booking.dates = list(reschedule.new_dates)
            booking.total_cost = reschedule.new_total_cost
            booking.reschedule = None
            booking.rescheduled_at = now
            return await self._save(booking, [notify.reschedule_accepted(booking, now)])

        return await self._execute(f"accept_reschedule {booking_id}", (booking_key(booking_id),), handler)

    async def decline_reschedule(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load_with_reschedule(booking_id)
            booking.reschedule = None
            now = self.clock()
            return await self._save(booking, [notify.reschedule_declined(booking, now)])

        return await self._execute(f"decline_reschedule {booking_id}", (booking_key(booking_id),), handler)

    async def withdraw_reschedule(self, booking_id: str) -> CommandResult:
        async def handler():
            booking = await self._load_with_reschedule(booking_id)
            booking.reschedule = None
            now = self.clock()
            return await self._save(booking, [notify.reschedule_withdrawn(booking, now)])

        return await self._execute(f"withdraw_reschedule {booking_id}", (booking_key(booking_id),), handler)

    # ---------------- day blocks ----------------

    async def _block(self, provider_id, day, block_type: BlockType) -> CommandResult:
        async def handler():
            provider = _require(provider_id, "provider_id")
            parse_day(day)
            return await self.store.add_day_block(DayBlock(provider_id=provider, date=day, type=block_type))

        return await self._execute(f"{block_type.value} {provider_id} {day}", (day_key(provider_id, day),), handler)

    async def block_day(self, provider_id: str, day: str) -> CommandResult:
        return await self._block(provider_id, day, BlockType.BLOCKED)

    async def block_day_open(self, provider_id: str, day: str) -> CommandResult:
        return await self._block(provider_id, day, BlockType.BLOCKED_OPEN)

    async def unblock_day(self, provider_id: str, day: str) -> CommandResult:
        async def handler():
            _require(provider_id, "provider_id")
            parse_day(day)
            return await self.store.remove_day_block(provider_id, day)

        return await self._execute(f"unblock_day {provider_id} {day}", (day_key(provider_id, day),), handler)

    async def toggle_open_for_more(self, provider_id: str, day: str) -> CommandResult:
        async def handler():
            _require(provider_id, "provider_id")
            parse_day(day)
            return await self.store.toggle_open_for_more(provider_id, day)

        return await self._execute(f"toggle_open_for_more {provider_id} {day}", (day_key(provider_id, day),), handler)

    # ---------------- notifications ----------------

    async def mark_notification_read(self, notification_id: str) -> CommandResult:
        async def handler():
            if not await self.store.mark_notifications_read([notification_id]):
                raise NotFoundError(f"Notification {notification_id} not found", notification_id=notification_id)
            return True

        return await self._execute(f"mark_notification_read {notification_id}", (), handler)

    async def mark_notifications_read(self, role, recipient_id: str | None = None) -> CommandResult:
        async def handler():
            for_role = _role(role, "role")
            unread = await self.store.list_notifications(for_role, recipient_id, unread_only=True)
            if not unread:
                return 0
            return await self.store.mark_notifications_read([n.id for n in unread])

        return await self._execute(f"mark_notifications_read {role}", (), handler)

    # ---------------- queries ----------------

    async def get_day_status(
        self,
        provider_id: str,
        day: str,
        viewer_requester_id: str | None = None,
        exclude_booking_id: str | None = None,
    ) -> DayStatus:
        parse_day(day)
        snapshot = await self.store.day_snapshot(provider_id, day)
        return resolve_day(snapshot, viewer_requester_id, exclude_booking_id)

    async def get_overlapping_bookings(
        self,
        provider_id: str,
        dates,
        exclude_booking_id: str | None = None,
    ) -> list[Booking]:
        days = normalize_days(dates)
        return find_overlapping(await self._provider_bookings(provider_id), provider_id, days, exclude_booking_id)

    async def get_booking(self, booking_id: str) -> Booking:
        return await self._load(booking_id)

    async def list_bookings(self, provider_id: str | None = None, requester_id: str | None = None) -> list[Booking]:
        return await self.store.list_bookings(provider_id=provider_id, requester_id=requester_id)

    async def list_notifications(
        self,
        role=None,
        recipient_id: str | None = None,
        unread_only: bool = False,
    ) -> list[Notification]:
        for_role = _role(role, "role") if role is not None else None
        return await self.store.list_notifications(for_role, recipient_id, unread_only)

    async def pending_bookings_count(self, provider_id: str) -> int:
        return count_pending(await self._provider_bookings(provider_id))

    async def reschedule_requests_count(self, provider_id: str) -> int:
        return count_reschedule_requests(await self._provider_bookings(provider_id))
