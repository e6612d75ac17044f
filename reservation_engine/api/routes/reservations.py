"""
Reservation endpoints with concurrency-safe spot allocation.
"""

import uuid

from fastapi import APIRouter, status

from reservation_engine.api.deps import CurrentPrincipal
from reservation_engine.schemas.reservation import (
    ReservationResponse,
    ReservationWithEvent,
    ReservationWithUser,
)
from reservation_engine.services import reservation_service

router = APIRouter(tags=["Reservations"])


@router.post(
    "/events/{event_id}/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reserve_endpoint(event_id: uuid.UUID, principal: CurrentPrincipal):
    """
    Reserve one spot on an event. Users only.

    The capacity check and the decrement happen in one serializable
    transaction, so two requests racing for the last spot cannot both win:
    the loser gets 409 CAPACITY_EXHAUSTED.
    """
    return await reservation_service.reserve_spot(principal, event_id)


@router.get("/events/{event_id}/reservations", response_model=list[ReservationWithUser])
async def list_event_reservations_endpoint(event_id: uuid.UUID, principal: CurrentPrincipal):
    """All reservations for an event, oldest first. Admin only."""
    return await reservation_service.list_for_event(principal, event_id)


@router.get("/reservations/me", response_model=list[ReservationWithEvent])
async def my_reservations_endpoint(principal: CurrentPrincipal):
    """The caller's reservations, newest first."""
    return await reservation_service.list_for_user(principal)


@router.delete("/reservations/{reservation_id}", response_model=ReservationResponse)
async def cancel_endpoint(reservation_id: uuid.UUID, principal: CurrentPrincipal):
    """Cancel a reservation. Owners may cancel their own; admins may cancel any."""
    return await reservation_service.cancel_reservation(principal, reservation_id)
