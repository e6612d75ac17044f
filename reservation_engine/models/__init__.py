from reservation_engine.models.user import User, UserRole
from reservation_engine.models.event import Event
from reservation_engine.models.reservation import Reservation, ReservationStatus

__all__ = ["User", "UserRole", "Event", "Reservation", "ReservationStatus"]
