from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .domain import Booking, DayBlock, Notification
from .errors import BookingError, CommandResult, NotFoundError, ValidationError
from .lifecycle import BookingLifecycle
from .resolver import DayStatus
from .schemas import (
    CancelBookingRequest,
    CountResponse,
    CreateBookingRequest,
    DayFlagResponse,
    DeclineOverlappingResponse,
    RescheduleRequest,
)

router = APIRouter()

ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (BookingError, 409),
)


def get_lifecycle(request: Request) -> BookingLifecycle:
    return request.app.state.lifecycle


def http_error(error: BookingError) -> HTTPException:
    status_code = next(code for cls, code in ERROR_STATUS if isinstance(error, cls))
    return HTTPException(status_code=status_code, detail=error.to_dict())


def unwrap(result: CommandResult):
    if not result.ok:
        raise http_error(result.error)
    return result.value


# ================= BOOKINGS =================

@router.post("/bookings", response_model=Booking, status_code=201)
async def create_booking(data: CreateBookingRequest, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    result = await lifecycle.create_booking(
        request_type=data.request_type,
        provider_id=data.provider_id,
        requester_id=data.requester_id,
        dates=data.dates,
        project_id=data.project_id,
        phase_id=data.phase_id,
        rate_info=data.rate_info,
    )
    return unwrap(result)


@router.get("/bookings", response_model=List[Booking])
async def list_bookings(
    provider_id: Optional[str] = None,
    requester_id: Optional[str] = None,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return await lifecycle.list_bookings(provider_id=provider_id, requester_id=requester_id)


@router.get("/bookings/{booking_id}", response_model=Booking)
async def get_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    try:
        return await lifecycle.get_booking(booking_id)
    except BookingError as e:
        raise http_error(e)


@router.post("/bookings/{booking_id}/accept", response_model=Booking)
async def accept_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.accept_booking(booking_id))


@router.post("/bookings/{booking_id}/decline", response_model=Booking)
async def decline_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.decline_booking(booking_id))


@router.post("/bookings/{booking_id}/withdraw", response_model=Booking)
async def withdraw_booking(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.withdraw_booking(booking_id))


@router.post("/bookings/{booking_id}/cancel", response_model=Booking)
async def cancel_booking(
    booking_id: str,
    data: CancelBookingRequest,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return unwrap(await lifecycle.cancel_booking(booking_id, data.reason, data.cancelled_by))


@router.post("/bookings/{booking_id}/convert-to-fix", response_model=Booking)
async def convert_option_to_fix(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.convert_option_to_fix(booking_id))


@router.post("/bookings/{booking_id}/decline-overlapping", response_model=DeclineOverlappingResponse)
async def decline_overlapping_bookings(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    declined = unwrap(await lifecycle.decline_overlapping_bookings(booking_id))
    return DeclineOverlappingResponse(
        booking_id=booking_id,
        declined=len(declined),
        declined_booking_ids=[b.id for b in declined],
    )


@router.post("/bookings/{booking_id}/reschedule", response_model=Booking)
async def request_reschedule(
    booking_id: str,
    data: RescheduleRequest,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    return unwrap(await lifecycle.request_reschedule(booking_id, data.new_dates))


@router.post("/bookings/{booking_id}/reschedule/accept", response_model=Booking)
async def accept_reschedule(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.accept_reschedule(booking_id))


@router.post("/bookings/{booking_id}/reschedule/decline", response_model=Booking)
async def decline_reschedule(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.decline_reschedule(booking_id))


@router.post("/bookings/{booking_id}/reschedule/withdraw", response_model=Booking)
async def withdraw_reschedule(booking_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.withdraw_reschedule(booking_id))


# ================= PROVIDER CALENDAR =================

@router.get("/providers/{provider_id}/days/{day}", response_model=DayStatus)
async def get_day_status(
    provider_id: str,
    day: str,
    viewer_requester_id: Optional[str] = None,
    exclude_booking_id: Optional[str] = None,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    try:
        return await lifecycle.get_day_status(provider_id, day, viewer_requester_id, exclude_booking_id)
    except BookingError as e:
        raise http_error(e)


@router.post("/providers/{provider_id}/days/{day}/block", response_model=DayBlock)
async def block_day(provider_id: str, day: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.block_day(provider_id, day))


@router.post("/providers/{provider_id}/days/{day}/block-open", response_model=DayBlock)
async def block_day_open(provider_id: str, day: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return unwrap(await lifecycle.block_day_open(provider_id, day))


@router.delete("/providers/{provider_id}/days/{day}/block", response_model=DayFlagResponse)
async def unblock_day(provider_id: str, day: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    removed = unwrap(await lifecycle.unblock_day(provider_id, day))
    return DayFlagResponse(provider_id=provider_id, date=day, value=removed)


@router.post("/providers/{provider_id}/days/{day}/open-for-more", response_model=DayFlagResponse)
async def toggle_open_for_more(provider_id: str, day: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    value = unwrap(await lifecycle.toggle_open_for_more(provider_id, day))
    return DayFlagResponse(provider_id=provider_id, date=day, value=value)


@router.get("/providers/{provider_id}/overlaps", response_model=List[Booking])
async def get_overlapping_bookings(
    provider_id: str,
    dates: List[str] = Query(...),
    exclude_booking_id: Optional[str] = None,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    try:
        return await lifecycle.get_overlapping_bookings(provider_id, dates, exclude_booking_id)
    except BookingError as e:
        raise http_error(e)


@router.get("/providers/{provider_id}/counts", response_model=CountResponse)
async def get_counts(provider_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    return CountResponse(
        provider_id=provider_id,
        pending=await lifecycle.pending_bookings_count(provider_id),
        reschedule_requests=await lifecycle.reschedule_requests_count(provider_id),
    )


# ================= NOTIFICATIONS =================

@router.get("/notifications", response_model=List[Notification])
async def list_notifications(
    role: Optional[str] = None,
    recipient_id: Optional[str] = None,
    unread_only: bool = False,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    try:
        return await lifecycle.list_notifications(role, recipient_id, unread_only)
    except BookingError as e:
        raise http_error(e)


@router.post("/notifications/read")
async def mark_notifications_read(
    role: str,
    recipient_id: Optional[str] = None,
    lifecycle: BookingLifecycle = Depends(get_lifecycle),
):
    marked = unwrap(await lifecycle.mark_notifications_read(role, recipient_id))
    return {"marked": marked}


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(notification_id: str, lifecycle: BookingLifecycle = Depends(get_lifecycle)):
    unwrap(await lifecycle.mark_notification_read(notification_id))
    return {"notification_id": notification_id, "read": True}
