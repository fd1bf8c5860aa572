import uuid
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class BookingStatus(str, Enum):
    OPTION_PENDING = "option_pending"
    OPTION_CONFIRMED = "option_confirmed"
    FIX_PENDING = "fix_pending"
    FIX_CONFIRMED = "fix_confirmed"
    DECLINED = "declined"
    WITHDRAWN = "withdrawn"
    CANCELLED = "cancelled"


class RequestType(str, Enum):
    OPTION = "option"
    FIX = "fix"


class RateType(str, Enum):
    DAILY = "daily"
    FLAT = "flat"


class Role(str, Enum):
    PROVIDER = "provider"
    REQUESTER = "requester"

    @property
    def opposite(self) -> "Role":
        return Role.REQUESTER if self is Role.PROVIDER else Role.PROVIDER


class BlockType(str, Enum):
    BLOCKED = "blocked"
    BLOCKED_OPEN = "blocked-open"


PENDING_STATUSES = frozenset({BookingStatus.OPTION_PENDING, BookingStatus.FIX_PENDING})
CONFIRMED_STATUSES = frozenset({BookingStatus.OPTION_CONFIRMED, BookingStatus.FIX_CONFIRMED})
TERMINAL_STATUSES = frozenset({BookingStatus.DECLINED, BookingStatus.WITHDRAWN, BookingStatus.CANCELLED})

TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.OPTION_PENDING: frozenset(
        {BookingStatus.OPTION_CONFIRMED, BookingStatus.DECLINED, BookingStatus.WITHDRAWN}
    ),
    BookingStatus.FIX_PENDING: frozenset(
        {BookingStatus.FIX_CONFIRMED, BookingStatus.DECLINED, BookingStatus.WITHDRAWN}
    ),
    BookingStatus.OPTION_CONFIRMED: frozenset({BookingStatus.FIX_CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.FIX_CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.DECLINED: frozenset(),
    BookingStatus.WITHDRAWN: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Provider-side conflict resolution may decline a confirmed option as well
FORCE_DECLINABLE = PENDING_STATUSES | {BookingStatus.OPTION_CONFIRMED}

ACCEPT_TARGET = {
    BookingStatus.OPTION_PENDING: BookingStatus.OPTION_CONFIRMED,
    BookingStatus.FIX_PENDING: BookingStatus.FIX_CONFIRMED,
}


def is_pending(status: BookingStatus) -> bool:
    return status in PENDING_STATUSES


def is_confirmed(status: BookingStatus) -> bool:
    return status in CONFIRMED_STATUSES


def is_terminal(status: BookingStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS[current]


def new_id() -> str:
    return str(uuid.uuid4())


class RateInfo(BaseModel):
    rate_type: RateType = RateType.DAILY
    day_rate: float = Field(default=0, ge=0)
    flat_rate: float = Field(default=0, ge=0)
    total_cost: float | None = Field(default=None, ge=0)


def compute_total_cost(rate_type: RateType, day_rate: float, flat_rate: float, day_count: int) -> float:
    if rate_type == RateType.FLAT:
        return flat_rate
    return day_rate * day_count


class RescheduleConflict(BaseModel):
    booking_id: str
    status: BookingStatus
    dates: list[str]
    blocking: bool


class Reschedule(BaseModel):
    new_dates: list[str]
    original_dates: list[str]
    requested_at: datetime
    new_total_cost: float
    conflicts: list[RescheduleConflict] = Field(default_factory=list)
    has_conflicts: bool = False
    has_blocking_conflicts: bool = False


class Booking(BaseModel):
    id: str = Field(default_factory=new_id)
    status: BookingStatus
    provider_id: str
    requester_id: str
    project_id: str
    phase_id: str
    dates: list[str]
    rate_type: RateType = RateType.DAILY
    day_rate: float = 0
    flat_rate: float = 0
    total_cost: float = 0

    requested_at: datetime
    confirmed_at: datetime | None = None
    fixed_at: datetime | None = None
    cancelled_at: datetime | None = None
    rescheduled_at: datetime | None = None

    cancelled_by: Role | None = None
    cancel_reason: str | None = None
    reschedule: Reschedule | None = None

    # optimistic concurrency counter, bumped by the store on every commit
    version: int = 0

    @property
    def is_active(self) -> bool:
        return not is_terminal(self.status)

    def occupies(self, day: str) -> bool:
        return self.is_active and day in self.dates

    def overlapping_dates(self, days) -> list[str]:
        wanted = set(days)
        return [d for d in self.dates if d in wanted]


class DayBlock(BaseModel):
    provider_id: str
    date: str
    type: BlockType


class Notification(BaseModel):
    id: str = Field(default_factory=new_id)
    for_role: Role
    recipient_id: str
    read: bool = False
    created_at: datetime
    type: str
    title: str
    message: str
    related_booking_id: str | None = None
