from dataclasses import dataclass
from typing import Any


class BookingError(Exception):
    """Expected business-rule failure. Carried back to callers inside a CommandResult."""

    code = "booking_error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        data = {"reason": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(BookingError):
    code = "validation_error"


class NotFoundError(BookingError):
    code = "not_found"


class InvalidStateError(BookingError):
    code = "invalid_state"


class ConcurrentModificationError(BookingError):
    code = "concurrent_modification"


class StaleWriteError(ConcurrentModificationError):
    """Optimistic version check failed on commit."""


class ConstraintError(BookingError):
    code = "constraint_violation"


@dataclass(frozen=True)
class CommandResult:
    ok: bool
    value: Any = None
    error: BookingError | None = None

    @classmethod
    def success(cls, value: Any = None) -> "CommandResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BookingError) -> "CommandResult":
        return cls(ok=False, error=error)

    @property
    def reason(self) -> str | None:
        return self.error.code if self.error else None

    def __bool__(self) -> bool:
        return self.ok
