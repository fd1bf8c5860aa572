from pydantic import BaseModel
from typing import List, Optional

from .domain import RateInfo, RequestType, Role


class CreateBookingRequest(BaseModel):
    request_type: RequestType
    provider_id: str
    requester_id: str
    project_id: str
    phase_id: str
    dates: List[str]
    rate_info: Optional[RateInfo] = None


class CancelBookingRequest(BaseModel):
    reason: str
    cancelled_by: Role


class RescheduleRequest(BaseModel):
    new_dates: List[str]


class DeclineOverlappingResponse(BaseModel):
    booking_id: str
    declined: int
    declined_booking_ids: List[str]


class DayFlagResponse(BaseModel):
    provider_id: str
    date: str
    value: bool


class CountResponse(BaseModel):
    provider_id: str
    pending: int
    reschedule_requests: int
