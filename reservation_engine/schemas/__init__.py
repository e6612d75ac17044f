from reservation_engine.schemas.event import (
    EventCreate,
    EventUpdate,
    EventResponse,
    EventSummary,
    EventListResponse,
)
from reservation_engine.schemas.reservation import (
    ReservationResponse,
    ReservationWithEvent,
    ReservationWithUser,
    UserSummary,
)

__all__ = [
    "EventCreate", "EventUpdate", "EventResponse", "EventSummary", "EventListResponse",
    "ReservationResponse", "ReservationWithEvent", "ReservationWithUser", "UserSummary",
]
