from datetime import datetime

from .domain import Booking, BookingStatus, Notification, Role

NEW_REQUEST = "new_request"
CONFIRMED = "confirmed"
DECLINED = "declined"
WITHDRAWN = "withdrawn"
CANCELLED = "cancelled"
OPTION_TO_FIX = "option_to_fix"
OPTION_OVERTAKEN = "option_overtaken"
RESCHEDULE_REQUEST = "reschedule_request"
RESCHEDULE_CONFIRMED = "reschedule_confirmed"
RESCHEDULE_DECLINED = "reschedule_declined"
RESCHEDULE_WITHDRAWN = "reschedule_withdrawn"


def _recipient(booking: Booking, role: Role) -> str:
    return booking.provider_id if role == Role.PROVIDER else booking.requester_id


def build_notification(
    booking: Booking,
    for_role: Role,
    type: str,
    title: str,
    message: str,
    now: datetime,
) -> Notification:
    return Notification(
        for_role=for_role,
        recipient_id=_recipient(booking, for_role),
        created_at=now,
        type=type,
        title=title,
        message=message,
        related_booking_id=booking.id,
    )


def new_request(booking: Booking, now: datetime) -> Notification:
    is_fix = booking.status == BookingStatus.FIX_PENDING
    return build_notification(
        booking,
        Role.PROVIDER,
        NEW_REQUEST,
        "New fix request" if is_fix else "New option request",
        f'{booking.requester_id}: project "{booking.project_id}" ({len(booking.dates)} days)',
        now,
    )


def confirmed(booking: Booking, now: datetime) -> Notification:
    is_fix = booking.status == BookingStatus.FIX_CONFIRMED
    return build_notification(
        booking,
        Role.REQUESTER,
        CONFIRMED,
        "Fix booking confirmed" if is_fix else "Option confirmed",
        f'{booking.provider_id} confirmed "{booking.project_id}"',
        now,
    )


def declined(booking: Booking, now: datetime, conflict: bool = False) -> Notification:
    suffix = " (conflict)" if conflict else ""
    return build_notification(
        booking,
        Role.REQUESTER,
        DECLINED,
        "Request declined",
        f'{booking.provider_id} declined "{booking.project_id}"{suffix}',
        now,
    )


def withdrawn(booking: Booking, now: datetime) -> Notification:
    return build_notification(
        booking,
        Role.PROVIDER,
        WITHDRAWN,
        "Request withdrawn",
        f'{booking.requester_id} withdrew "{booking.project_id}"',
        now,
    )


def cancelled(booking: Booking, now: datetime) -> Notification:
    canceller = booking.cancelled_by
    return build_notification(
        booking,
        canceller.opposite,
        CANCELLED,
        "Booking cancelled",
        f'{_recipient(booking, canceller)} cancelled "{booking.project_id}": {booking.cancel_reason}',
        now,
    )


def converted_to_fix(booking: Booking, now: datetime) -> list[Notification]:
    return [
        build_notification(
            booking,
            Role.PROVIDER,
            OPTION_TO_FIX,
            "Option converted to fix",
            f'{booking.requester_id} booked "{booking.project_id}" as fix',
            now,
        ),
        build_notification(
            booking,
            Role.REQUESTER,
            CONFIRMED,
            "Fix booking active",
            f'"{booking.project_id}" is now booked as fix',
            now,
        ),
    ]


def overtaken(option: Booking, now: datetime) -> Notification:
    return build_notification(
        option,
        Role.REQUESTER,
        OPTION_OVERTAKEN,
        "Option overtaken",
        f'Your option for "{option.project_id}" was overtaken by a fix booking',
        now,
    )


def reschedule_requested(booking: Booking, now: datetime) -> Notification:
    reschedule = booking.reschedule
    message = f'{booking.requester_id} wants to move "{booking.project_id}" to {len(reschedule.new_dates)} days'
    if reschedule.has_blocking_conflicts:
        message += " (overlaps a fix booking)"
    elif reschedule.has_conflicts:
        message += " (overlaps other requests)"
    return build_notification(booking, Role.PROVIDER, RESCHEDULE_REQUEST, "Reschedule request", message, now)


def reschedule_accepted(booking: Booking, now: datetime) -> Notification:
    return build_notification(
        booking,
        Role.REQUESTER,
        RESCHEDULE_CONFIRMED,
        "Reschedule confirmed",
        f'{booking.provider_id} accepted the new dates for "{booking.project_id}"',
        now,
    )


def reschedule_declined(booking: Booking, now: datetime) -> Notification:
    return build_notification(
        booking,
        Role.REQUESTER,
        RESCHEDULE_DECLINED,
        "Reschedule declined",
        f'{booking.provider_id} declined the new dates for "{booking.project_id}"',
        now,
    )


def reschedule_withdrawn(booking: Booking, now: datetime) -> Notification:
    return build_notification(
        booking,
        Role.PROVIDER,
        RESCHEDULE_WITHDRAWN,
        "Reschedule withdrawn",
        f'{booking.requester_id} withdrew the reschedule request for "{booking.project_id}"',
        now,
    )
