"""
Capacity ledger: the only code that writes `events.available_spots`.

CONCURRENCY STRATEGY: Locked read + relative update
====================================================

Problem:
  Two users try to reserve the last spot simultaneously.
  Both read available_spots=1, both write 0, both succeed.
  Result: Overbooking.

Solution:
  Every ledger primitive runs inside a transaction opened by the
  transactional coordinator and:

  1. Reads the event row with SELECT ... FOR UPDATE, so the read is part of
     the transaction's isolation and a concurrent writer must wait for us
     (SQLite ignores FOR UPDATE; there BEGIN IMMEDIATE already holds the
     database write lock for the whole transaction).
  2. Writes a relative delta:
     UPDATE events SET available_spots = available_spots - 1 WHERE id = :id
     never "available_spots = <value computed in Python>", so two
     transactions on the same row cannot overwrite each other's effect.

  The CHECK constraints on events (0 <= available_spots <= max_capacity)
  are the final safety net.

The ledger never commits. A raised error leaves rollback to the caller.
"""

import uuid

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.event import Event
from reservation_engine.core.errors import CapacityExhausted, EventNotFound
from reservation_engine.core.logging import get_logger

logger = get_logger(__name__)


async def _lock_capacity(db: AsyncSession, event_id: uuid.UUID) -> tuple[int, int]:
    """Return (max_capacity, available_spots) with the event row locked."""
    result = await db.execute(
        select(Event.max_capacity, Event.available_spots)
        .where(Event.id == event_id)
        .with_for_update()
    )
    row = result.one_or_none()
    if row is None:
        raise EventNotFound(event_id)
    return row.max_capacity, row.available_spots


async def _read_available(db: AsyncSession, event_id: uuid.UUID) -> int:
    result = await db.execute(select(Event.available_spots).where(Event.id == event_id))
    return result.scalar_one()


async def try_decrement(db: AsyncSession, event_id: uuid.UUID) -> int:
    """
    Take one spot from the event.
    Raises CapacityExhausted when none are left; returns the new count.
    """
    _, available = await _lock_capacity(db, event_id)
    if available <= 0:
        logger.info("capacity_exhausted", event_id=str(event_id))
        raise CapacityExhausted()

    try:
        await db.execute(
            update(Event)
            .execution_options(synchronize_session=False)
            .where(Event.id == event_id)
            .values(available_spots=Event.available_spots - 1)
        )
    except IntegrityError as exc:
        # check_available_spots_non_negative fired
        logger.warning("capacity_check_constraint_rejected", event_id=str(event_id))
        raise CapacityExhausted() from exc

    remaining = await _read_available(db, event_id)
    logger.debug("capacity_decremented", event_id=str(event_id), available_spots=remaining)
    return remaining


async def increment(db: AsyncSession, event_id: uuid.UUID) -> int:
    """
    Give one spot back to the event, never exceeding max_capacity.
    Returns the new count.
    """
    max_capacity, available = await _lock_capacity(db, event_id)
    if available >= max_capacity:
        # Only reachable when capacity was shrunk below the confirmed count.
        logger.warning(
            "capacity_increment_clamped",
            event_id=str(event_id),
            available_spots=available,
            max_capacity=max_capacity,
        )

    await db.execute(
        update(Event)
        .execution_options(synchronize_session=False)
        .where(Event.id == event_id)
        .values(
            available_spots=case(
                (Event.available_spots + 1 > Event.max_capacity, Event.max_capacity),
                else_=Event.available_spots + 1,
            )
        )
    )
    remaining = await _read_available(db, event_id)
    logger.debug("capacity_incremented", event_id=str(event_id), available_spots=remaining)
    return remaining


async def resize(db: AsyncSession, event_id: uuid.UUID, new_max_capacity: int) -> int:
    """
    Change max_capacity and shift available_spots by the same signed delta,
    clamped at zero. Shrinking below the confirmed count never cancels
    reservations; it only blocks new ones until spots free up.
    """
    if new_max_capacity <= 0:
        raise ValueError("max_capacity must be positive")

    old_max_capacity, available = await _lock_capacity(db, event_id)
    delta = new_max_capacity - old_max_capacity
    if delta == 0:
        return available

    shifted = Event.available_spots + delta
    await db.execute(
        update(Event)
        .execution_options(synchronize_session=False)
        .where(Event.id == event_id)
        .values(
            max_capacity=new_max_capacity,
            available_spots=case(
                (shifted < 0, 0),
                (shifted > new_max_capacity, new_max_capacity),
                else_=shifted,
            ),
        )
    )
    remaining = await _read_available(db, event_id)
    logger.info(
        "capacity_resized",
        event_id=str(event_id),
        old_max_capacity=old_max_capacity,
        new_max_capacity=new_max_capacity,
        available_spots=remaining,
    )
    return remaining
