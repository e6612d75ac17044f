"""
Event model with seat inventory tracking.

Key design decisions:
- `available_spots` is denormalized (avoids COUNT over reservations) and is
  only ever written through the capacity ledger's relative updates
- CHECK constraints are the final safety net for the capacity bounds and
  for the location/online_link exclusivity
- Index on `event_date` for listing in date order and day filters
"""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from reservation_engine.db.base import Base, TimestampMixin
from reservation_engine.models.venue import PhysicalVenue, Venue, VirtualVenue


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)
    online_link = Column(String(2048), nullable=True)
    max_capacity = Column(Integer, nullable=False)
    available_spots = Column(Integer, nullable=False)
    creator_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    # Relationships
    creator = relationship("User", back_populates="events", lazy="raise")
    reservations = relationship(
        "Reservation",
        back_populates="event",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    __table_args__ = (
        CheckConstraint("available_spots >= 0", name="check_available_spots_non_negative"),
        CheckConstraint("max_capacity > 0", name="check_max_capacity_positive"),
        CheckConstraint("available_spots <= max_capacity", name="check_available_lte_max"),
        CheckConstraint(
            "(location IS NULL) <> (online_link IS NULL)",
            name="check_location_xor_online_link",
        ),
        Index("ix_events_event_date", "event_date"),
    )

    @property
    def venue(self) -> Venue:
        if self.location is not None:
            return PhysicalVenue(self.location)
        return VirtualVenue(self.online_link)

    @venue.setter
    def venue(self, venue: Venue) -> None:
        if isinstance(venue, PhysicalVenue):
            self.location, self.online_link = venue.location, None
        else:
            self.location, self.online_link = None, venue.online_link

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, name={self.name}, available={self.available_spots}/{self.max_capacity})>"
