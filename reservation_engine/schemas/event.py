"""
Pydantic schemas for event-related request/response validation.

Input models accept both snake_case and camelCase keys (eventDate,
maxCapacity, onlineLink). The location/online_link exclusivity is not
checked here: it depends on the stored event for partial updates, so it is
enforced once by models.venue when the final state is known.
"""

import re
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_URL_PATTERN = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _EventInput(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    @field_validator("event_date", check_fields=False)
    @classmethod
    def _normalize_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _to_utc(value) if value is not None else None

    @field_validator("online_link", check_fields=False)
    @classmethod
    def _check_link(cls, value: Optional[str]) -> Optional[str]:
        if value and not _URL_PATTERN.match(value):
            raise ValueError("online_link must be an http(s) URL")
        return value


class EventCreate(_EventInput):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    event_date: datetime
    location: Optional[str] = Field(None, max_length=255)
    online_link: Optional[str] = Field(None, max_length=2048)
    max_capacity: int = Field(..., gt=0, le=100000)


class EventUpdate(_EventInput):
    """Partial update: only fields present in the payload are applied."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    event_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=255)
    online_link: Optional[str] = Field(None, max_length=2048)
    max_capacity: Optional[int] = Field(None, gt=0, le=100000)

    @field_validator("name", "event_date", "max_capacity")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("cannot be null")
        return value


class EventSummary(BaseModel):
    id: uuid.UUID
    name: str
    event_date: datetime
    location: Optional[str]
    online_link: Optional[str]
    max_capacity: int
    available_spots: int

    model_config = {"from_attributes": True}


class EventResponse(EventSummary):
    description: Optional[str]
    creator_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    cached: bool = False
