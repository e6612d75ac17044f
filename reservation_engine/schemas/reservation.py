"""
Pydantic schemas for reservation responses.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel

from reservation_engine.models.reservation import ReservationStatus
from reservation_engine.schemas.event import EventSummary


class UserSummary(BaseModel):
    id: uuid.UUID
    email: str

    model_config = {"from_attributes": True}


class ReservationResponse(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    status: ReservationStatus
    reservation_date: datetime

    model_config = {"from_attributes": True}


class ReservationWithEvent(ReservationResponse):
    event: EventSummary


class ReservationWithUser(ReservationResponse):
    user: UserSummary
