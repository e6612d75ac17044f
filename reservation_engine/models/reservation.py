"""
Reservation model: one user's hold on one spot of an event.

Key design decisions:
- Partial unique index on (event_id, user_id) WHERE status = 'CONFIRMED'
  allows any number of canceled rows but only one active hold per pair
- Status is flipped on cancellation, rows are never deleted except by the
  cascade from their event
"""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import relationship

from reservation_engine.db.base import Base, utcnow


class ReservationStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CANCELED = "CANCELED"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(ReservationStatus, name="reservation_status", native_enum=False, length=10),
        nullable=False,
        default=ReservationStatus.CONFIRMED,
    )
    reservation_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    event = relationship("Event", back_populates="reservations", lazy="raise")
    user = relationship("User", back_populates="reservations", lazy="raise")

    __table_args__ = (
        Index(
            "uq_reservations_confirmed_event_user",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'CONFIRMED'"),
            sqlite_where=text("status = 'CONFIRMED'"),
        ),
    )

    @property
    def is_confirmed(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED

    def __repr__(self) -> str:
        return f"<Reservation(id={self.id}, user={self.user_id}, event={self.event_id}, status={self.status})>"
