from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String

from shared.database import Base


class BookingRow(Base):
    __tablename__ = "bookings"

    id = Column(String, primary_key=True)

    provider_id = Column(String, nullable=False, index=True)
    requester_id = Column(String, nullable=False, index=True)
    project_id = Column(String, nullable=False)
    phase_id = Column(String, nullable=False)

    status = Column(String, nullable=False, index=True)  # option_pending/option_confirmed/fix_pending/fix_confirmed/declined/withdrawn/cancelled
    dates = Column(JSON, nullable=False)  # sorted YYYY-MM-DD keys

    rate_type = Column(String, nullable=False)
    day_rate = Column(Float, nullable=False, default=0)
    flat_rate = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)

    requested_at = Column(DateTime(timezone=True), nullable=False)
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    fixed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    rescheduled_at = Column(DateTime(timezone=True), nullable=True)

    cancelled_by = Column(String, nullable=True)
    cancel_reason = Column(String, nullable=True)
    reschedule = Column(JSON, nullable=True)

    version = Column(Integer, nullable=False, default=1)


class DayBlockRow(Base):
    __tablename__ = "day_blocks"

    provider_id = Column(String, primary_key=True)
    date = Column(String, primary_key=True)
    type = Column(String, nullable=False)  # blocked/blocked-open


class OpenForMoreRow(Base):
    __tablename__ = "open_for_more_days"

    provider_id = Column(String, primary_key=True)
    date = Column(String, primary_key=True)


class NotificationRow(Base):
    __tablename__ = "notifications"

    # insertion order; notifications of one command share created_at
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, unique=True)
    for_role = Column(String, nullable=False, index=True)
    recipient_id = Column(String, nullable=False, index=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    related_booking_id = Column(String, nullable=True, index=True)
