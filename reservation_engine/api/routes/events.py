"""
Event endpoints. Reads are served through the Redis cache; writes are
admin only and invalidate it.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Query, Response, status

from reservation_engine.api.deps import CurrentPrincipal
from reservation_engine.schemas.event import (
    EventCreate,
    EventListResponse,
    EventResponse,
    EventUpdate,
)
from reservation_engine.services import event_service

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("/", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event_endpoint(event_data: EventCreate, principal: CurrentPrincipal):
    """Create a new event. Admin only."""
    return await event_service.create_event(principal, event_data)


@router.get("/", response_model=EventListResponse)
async def list_events_endpoint(
    name: Optional[str] = Query(None, min_length=1, max_length=255),
    on_date: Optional[date] = Query(None, alias="date"),
):
    """
    List events ordered by date, optionally filtered by name or calendar day.
    The unfiltered list is cached for up to an hour and evicted on every change.
    """
    events, cached = await event_service.list_events(name=name, on_date=on_date)
    return EventListResponse(events=events, total=len(events), cached=cached)


@router.get("/{event_id}", response_model=EventResponse)
async def get_event_endpoint(event_id: uuid.UUID):
    return await event_service.get_event(event_id)


@router.patch("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: uuid.UUID,
    event_data: EventUpdate,
    principal: CurrentPrincipal,
):
    """
    Partially update an event. Admin only.
    Changing max_capacity shifts available_spots by the same delta, never below zero.
    """
    return await event_service.update_event(principal, event_id, event_data)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event_endpoint(event_id: uuid.UUID, principal: CurrentPrincipal):
    """Delete an event and all its reservations. Admin only."""
    await event_service.delete_event(principal, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
