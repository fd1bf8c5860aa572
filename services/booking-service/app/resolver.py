"""
Availability Resolver.

Maps (provider, day, viewer) to what that viewer may see and whether the day
can be requested. Rules are evaluated top-down and the first one that returns
an outcome wins:

    blocked > blocked-open > fix_confirmed > option_confirmed > pending > available

Only fix_confirmed bookings are visible across requesters. Options and pending
requests are private to the requester that owns them (and to the provider).
"""
from typing import Callable
from pydantic import BaseModel, Field

from .domain import Booking, BookingStatus, BlockType, DayBlock, is_pending

AVAILABLE = "available"
BLOCKED = "blocked"
BLOCKED_OPEN = "blocked-open"
FIX_CONFIRMED = "fix-confirmed"
FIX_OPEN = "fix-open"
OPTION_CONFIRMED = "option-confirmed"
PENDING = "pending"


class DayStatus(BaseModel):
    status: str
    bookable: bool
    is_blocked: bool = False
    has_booking: bool = False
    booking: Booking | None = None
    bookings: list[Booking] = Field(default_factory=list)


class DaySnapshot(BaseModel):
    """Everything the resolver needs for one provider-day, read in one consistent step."""

    provider_id: str
    date: str
    bookings: list[Booking] = Field(default_factory=list)
    block: DayBlock | None = None
    open_for_more: bool = False


class ViewContext(BaseModel):
    snapshot: DaySnapshot
    viewer_requester_id: str | None = None
    # non-terminal bookings occupying the day, minus the excluded one
    active: list[Booking] = Field(default_factory=list)

    @property
    def provider_view(self) -> bool:
        return self.viewer_requester_id is None

    def visible(self, bookings: list[Booking]) -> list[Booking]:
        if self.provider_view:
            return bookings
        return [b for b in bookings if b.requester_id == self.viewer_requester_id]


def _available() -> DayStatus:
    return DayStatus(status=AVAILABLE, bookable=True)


def _blocked_rule(ctx: ViewContext) -> DayStatus | None:
    block = ctx.snapshot.block
    if block and block.type == BlockType.BLOCKED:
        return DayStatus(status=BLOCKED, bookable=False, is_blocked=True)
    return None


def _blocked_open_rule(ctx: ViewContext) -> DayStatus | None:
    block = ctx.snapshot.block
    if not block or block.type != BlockType.BLOCKED_OPEN:
        return None
    if ctx.provider_view:
        return DayStatus(status=BLOCKED_OPEN, bookable=False, is_blocked=True)
    # private to the provider; requesters may still ask
    return _available()


def _fix_confirmed_rule(ctx: ViewContext) -> DayStatus | None:
    fixed = [b for b in ctx.active if b.status == BookingStatus.FIX_CONFIRMED]
    if not fixed:
        return None

    open_for_more = ctx.snapshot.open_for_more

    if ctx.provider_view:
        return DayStatus(
            status=FIX_OPEN if open_for_more else FIX_CONFIRMED,
            bookable=False,
            has_booking=True,
            booking=fixed[0],
            bookings=fixed,
        )

    own = ctx.visible(fixed)
    if own:
        return DayStatus(status=FIX_CONFIRMED, bookable=False, has_booking=True, booking=own[0])
    if open_for_more:
        return _available()
    return DayStatus(status=FIX_CONFIRMED, bookable=False, has_booking=True, booking=fixed[0])


def _option_confirmed_rule(ctx: ViewContext) -> DayStatus | None:
    options = ctx.visible([b for b in ctx.active if b.status == BookingStatus.OPTION_CONFIRMED])
    if not options:
        return None
    if ctx.provider_view:
        return DayStatus(
            status=OPTION_CONFIRMED,
            bookable=False,
            has_booking=True,
            booking=options[0],
            bookings=list(ctx.active),
        )
    return DayStatus(status=OPTION_CONFIRMED, bookable=False, has_booking=True, booking=options[0])


def _pending_rule(ctx: ViewContext) -> DayStatus | None:
    pending = ctx.visible([b for b in ctx.active if is_pending(b.status)])
    if not pending:
        return None
    return DayStatus(
        status=PENDING,
        bookable=False,
        has_booking=True,
        booking=pending[0],
        bookings=pending if ctx.provider_view else [],
    )


def _available_rule(ctx: ViewContext) -> DayStatus | None:
    return _available()


Rule = Callable[[ViewContext], DayStatus | None]

# Order is the precedence.
DAY_RULES: tuple[tuple[str, Rule], ...] = (
    ("blocked", _blocked_rule),
    ("blocked_open", _blocked_open_rule),
    ("fix_confirmed", _fix_confirmed_rule),
    ("option_confirmed", _option_confirmed_rule),
    ("pending", _pending_rule),
    ("available", _available_rule),
)


def resolve_day(
    snapshot: DaySnapshot,
    viewer_requester_id: str | None = None,
    exclude_booking_id: str | None = None,
) -> DayStatus:
    """
    Resolve the day status for one viewer. ``viewer_requester_id=None`` is the
    provider's own view. ``exclude_booking_id`` drops one booking from
    consideration, so a booking being rescheduled does not collide with itself.
    """
    active = [
        b for b in snapshot.bookings
        if b.id != exclude_booking_id and b.occupies(snapshot.date)
    ]
    # Stable order so "first" booking picks are deterministic
    active.sort(key=lambda b: (b.requested_at, b.id))

    ctx = ViewContext(snapshot=snapshot, viewer_requester_id=viewer_requester_id, active=active)
    for _name, rule in DAY_RULES:
        outcome = rule(ctx)
        if outcome is not None:
            return outcome

    return _available()
