"""
Event service: administrative CRUD plus cached reads.

Capacity columns are never written here directly. Creation seeds
available_spots = max_capacity; every later change goes through the ledger.
"""

import uuid
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, TypeVar, Union

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.core.errors import EventNotFound, ValidationFailed
from reservation_engine.core.logging import get_logger
from reservation_engine.core.security import Principal, require_role
from reservation_engine.db.base import utcnow
from reservation_engine.models.event import Event
from reservation_engine.models.reservation import Reservation
from reservation_engine.models.user import UserRole
from reservation_engine.models.venue import resolve_venue
from reservation_engine.schemas.event import EventCreate, EventResponse, EventUpdate
from reservation_engine.services import cache_service, ledger
from reservation_engine.services.transaction import run_in_transaction

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_UPDATABLE_FIELDS = ("name", "description", "event_date")


def validate_fields(model: type[ModelT], fields: Union[ModelT, Mapping[str, Any]]) -> ModelT:
    """Parse raw input into `model`, reporting problems as ValidationFailed."""
    if isinstance(fields, model):
        return fields
    try:
        return model.model_validate(fields)
    except ValidationError as exc:
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationFailed(details=details) from exc


async def create_event(
    principal: Principal,
    fields: Union[EventCreate, Mapping[str, Any]],
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    now_provider=utcnow,
) -> Event:
    """Create a new event with every spot available."""
    require_role(principal, UserRole.ADMIN)
    data = validate_fields(EventCreate, fields)
    venue = resolve_venue(data.location, data.online_link)
    if data.event_date <= now_provider():
        raise ValidationFailed.for_field("event_date", "Event date must be in the future")

    async def _create(db: AsyncSession) -> Event:
        event = Event(
            name=data.name,
            description=data.description,
            event_date=data.event_date,
            max_capacity=data.max_capacity,
            available_spots=data.max_capacity,
            creator_id=principal.user_id,
        )
        event.venue = venue
        db.add(event)
        await db.flush()
        await db.refresh(event)
        return event

    event = await run_in_transaction(_create, session_factory=session_factory, operation="create_event")
    logger.info(
        "event_created",
        event_id=str(event.id),
        name=event.name,
        max_capacity=event.max_capacity,
        creator_id=str(principal.user_id),
    )
    await cache_service.invalidate_event(event.id)
    return event


async def get_event(
    event_id: uuid.UUID,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> EventResponse:
    """Read-through: cache first, database on miss, then populate the cache."""
    cached = await cache_service.get_cached_event(event_id)
    if cached is not None:
        try:
            return EventResponse.model_validate(cached)
        except ValidationError:
            logger.warning("cache_entry_invalid", key=cache_service.event_key(event_id))

    async def _load(db: AsyncSession) -> Event:
        result = await db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if event is None:
            raise EventNotFound(event_id)
        return event

    event = await run_in_transaction(_load, session_factory=session_factory, operation="get_event")
    response = EventResponse.model_validate(event)
    await cache_service.set_cached_event(event_id, response.model_dump(mode="json"))
    return response


def _day_bounds(on_date: date) -> tuple[datetime, datetime]:
    start = datetime.combine(on_date, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


async def list_events(
    name: Optional[str] = None,
    on_date: Optional[date] = None,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> tuple[list[EventResponse], bool]:
    """
    List events ordered by date. Returns (events, served_from_cache).
    Only the unfiltered list is cached; filtered queries always hit the database.
    """
    unfiltered = not name and on_date is None

    if unfiltered:
        cached = await cache_service.get_cached_event_list()
        if cached is not None:
            try:
                return [EventResponse.model_validate(item) for item in cached], True
            except ValidationError:
                logger.warning("cache_entry_invalid", key=cache_service.EVENT_LIST_CACHE_KEY)

    async def _query(db: AsyncSession) -> list[Event]:
        query = select(Event)
        if name:
            query = query.where(func.lower(Event.name).contains(name.lower(), autoescape=True))
        if on_date is not None:
            start, end = _day_bounds(on_date)
            query = query.where(Event.event_date >= start, Event.event_date < end)
        result = await db.execute(query.order_by(Event.event_date.asc(), Event.id))
        return list(result.scalars().all())

    events = await run_in_transaction(_query, session_factory=session_factory, operation="list_events")
    responses = [EventResponse.model_validate(e) for e in events]

    if unfiltered:
        await cache_service.set_cached_event_list([r.model_dump(mode="json") for r in responses])
    return responses, False


async def update_event(
    principal: Principal,
    event_id: uuid.UUID,
    fields: Union[EventUpdate, Mapping[str, Any]],
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Event:
    """
    Apply a partial update. A max_capacity change is delegated to the
    ledger's resize rule; the venue is re-validated against the merged state.
    """
    require_role(principal, UserRole.ADMIN)
    data = validate_fields(EventUpdate, fields)
    provided = data.model_fields_set

    # Reject "both given" before touching the database.
    if data.location and data.online_link:
        resolve_venue(data.location, data.online_link)

    async def _update(db: AsyncSession) -> Event:
        result = await db.execute(select(Event).where(Event.id == event_id).with_for_update())
        event = result.scalar_one_or_none()
        if event is None:
            raise EventNotFound(event_id)

        location = data.location if "location" in provided else event.location
        online_link = data.online_link if "online_link" in provided else event.online_link
        venue = resolve_venue(location, online_link)

        for field in _UPDATABLE_FIELDS:
            if field in provided:
                setattr(event, field, getattr(data, field))
        event.venue = venue
        await db.flush()

        if "max_capacity" in provided and data.max_capacity != event.max_capacity:
            await ledger.resize(db, event.id, data.max_capacity)

        await db.refresh(event)
        return event

    event = await run_in_transaction(_update, session_factory=session_factory, operation="update_event")
    logger.info(
        "event_updated",
        event_id=str(event_id),
        fields=sorted(provided),
        max_capacity=event.max_capacity,
        available_spots=event.available_spots,
    )
    await cache_service.invalidate_event(event_id)
    return event


async def delete_event(
    principal: Principal,
    event_id: uuid.UUID,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> None:
    """Delete an event and, with it, every reservation that points to it."""
    require_role(principal, UserRole.ADMIN)

    async def _delete(db: AsyncSession) -> int:
        result = await db.execute(select(Event.id).where(Event.id == event_id).with_for_update())
        if result.first() is None:
            raise EventNotFound(event_id)

        removed = await db.execute(delete(Reservation).where(Reservation.event_id == event_id))
        await db.execute(delete(Event).where(Event.id == event_id))
        return removed.rowcount

    reservations_removed = await run_in_transaction(
        _delete, session_factory=session_factory, operation="delete_event"
    )
    logger.info(
        "event_deleted",
        event_id=str(event_id),
        reservations_removed=reservations_removed,
    )
    await cache_service.invalidate_event(event_id)
