"""
User model. Users are owned by the identity provider; the reservation
core only needs their id, contact email and role.
"""

import enum
import uuid

from sqlalchemy import Column, Enum, String, Uuid
from sqlalchemy.orm import relationship

from reservation_engine.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", native_enum=False, length=10),
        nullable=False,
        default=UserRole.USER,
    )

    # Relationships
    events = relationship("Event", back_populates="creator", lazy="raise")
    reservations = relationship("Reservation", back_populates="user", lazy="raise")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
