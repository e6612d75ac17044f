"""
Typed error conditions raised by the reservation core.

Services raise these; the API layer maps each code to an HTTP status.
Nothing in here knows about HTTP.
"""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_AUTHORIZED = "NOT_AUTHORIZED"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    EVENT_ALREADY_OCCURRED = "EVENT_ALREADY_OCCURRED"
    CAPACITY_EXHAUSTED = "CAPACITY_EXHAUSTED"
    ALREADY_RESERVED = "ALREADY_RESERVED"
    ALREADY_CANCELED = "ALREADY_CANCELED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class ReservationEngineError(Exception):
    """Base error with a stable code and a user-safe message."""

    code: ErrorCode = ErrorCode.STORE_UNAVAILABLE
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None, *, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


# Validation

class ValidationFailed(ReservationEngineError):
    """Malformed input; ``details`` holds a list of field-level errors."""

    code = ErrorCode.VALIDATION_FAILED
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls(message, details=[{"field": field, "message": message}])


# Authorization

class NotAuthorized(ReservationEngineError):
    code = ErrorCode.NOT_AUTHORIZED
    default_message = "You are not allowed to perform this action"


# Not found

class EventNotFound(ReservationEngineError):
    code = ErrorCode.EVENT_NOT_FOUND
    default_message = "Event not found"

    def __init__(self, event_id: Any) -> None:
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class ReservationNotFound(ReservationEngineError):
    code = ErrorCode.RESERVATION_NOT_FOUND
    default_message = "Reservation not found"

    def __init__(self, reservation_id: Any) -> None:
        super().__init__(f"Reservation {reservation_id} not found")
        self.reservation_id = reservation_id


# Business-rule conflicts

class BusinessRuleConflict(ReservationEngineError):
    """Raised inside a transaction; always causes a rollback."""


class EventAlreadyOccurred(BusinessRuleConflict):
    code = ErrorCode.EVENT_ALREADY_OCCURRED
    default_message = "Cannot reserve a spot for an event that has already occurred"


class CapacityExhausted(BusinessRuleConflict):
    code = ErrorCode.CAPACITY_EXHAUSTED
    default_message = "Sorry, there are no more spots available for this event"


class AlreadyReserved(BusinessRuleConflict):
    code = ErrorCode.ALREADY_RESERVED
    default_message = "You already have a confirmed reservation for this event"


class AlreadyCanceled(BusinessRuleConflict):
    code = ErrorCode.ALREADY_CANCELED
    default_message = "This reservation is already canceled"


# Infrastructure

class StoreUnavailable(ReservationEngineError):
    """The durable store failed; the only error treated as a system fault."""

    code = ErrorCode.STORE_UNAVAILABLE
    default_message = "Internal server error"
