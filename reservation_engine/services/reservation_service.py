"""
Reservation lifecycle.

State machine per (user, event) pair:

    no-reservation --reserve--> CONFIRMED --cancel--> CANCELED

  - CANCELED never goes back to CONFIRMED; reserving again inserts a new row.
  - reserve while CONFIRMED  -> AlreadyReserved, no side effects.
  - cancel while CANCELED    -> AlreadyCanceled, no side effects.

`reserve` and `cancel` are the transition steps; they expect an open
transaction and leave commit/rollback to the coordinator. `reserve_spot`,
`cancel_reservation` and the list functions are the public operations:
capability check, coordinated transaction, then cache invalidation.
"""

import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from reservation_engine.core.errors import (
    AlreadyCanceled,
    AlreadyReserved,
    EventAlreadyOccurred,
    EventNotFound,
    NotAuthorized,
    ReservationEngineError,
    ReservationNotFound,
)
from reservation_engine.core.logging import get_logger
from reservation_engine.core.metrics import (
    record_cancellation,
    record_reservation_attempt,
    reservation_latency,
)
from reservation_engine.core.security import Principal, require_role
from reservation_engine.db.base import utcnow
from reservation_engine.models.event import Event
from reservation_engine.models.reservation import Reservation, ReservationStatus
from reservation_engine.models.user import UserRole
from reservation_engine.services import cache_service, ledger
from reservation_engine.services.transaction import run_in_transaction

logger = get_logger(__name__)

NowProvider = Callable[[], datetime]


def _as_aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig).lower()
    return "unique" in message or "uq_reservations_confirmed_event_user" in message


# ---------------------------------------------------------------------------
# Transitions (run inside a transaction)
# ---------------------------------------------------------------------------

async def reserve(
    db: AsyncSession,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    now_provider: NowProvider = utcnow,
) -> Reservation:
    """no-reservation -> CONFIRMED."""
    result = await db.execute(
        select(Event.id, Event.event_date).where(Event.id == event_id).with_for_update()
    )
    event = result.one_or_none()
    if event is None:
        raise EventNotFound(event_id)

    now = now_provider()
    if _as_aware(event.event_date) <= now:
        raise EventAlreadyOccurred()

    existing = await db.execute(
        select(Reservation.id).where(
            Reservation.event_id == event_id,
            Reservation.user_id == user_id,
            Reservation.status == ReservationStatus.CONFIRMED,
        )
    )
    if existing.first() is not None:
        raise AlreadyReserved()

    remaining = await ledger.try_decrement(db, event_id)

    reservation = Reservation(
        event_id=event_id,
        user_id=user_id,
        status=ReservationStatus.CONFIRMED,
        reservation_date=now,
    )
    db.add(reservation)
    try:
        await db.flush()
    except IntegrityError as exc:
        # A concurrent reserve by the same user got its row in first.
        if _is_unique_violation(exc):
            raise AlreadyReserved() from exc
        raise

    logger.debug(
        "reservation_inserted",
        reservation_id=str(reservation.id),
        event_id=str(event_id),
        available_spots=remaining,
    )
    return reservation


async def cancel(
    db: AsyncSession,
    reservation_id: uuid.UUID,
    requester_id: uuid.UUID,
    requester_role: UserRole,
) -> Reservation:
    """CONFIRMED -> CANCELED. Owners may cancel their own, admins any."""
    result = await db.execute(
        select(Reservation).where(Reservation.id == reservation_id).with_for_update()
    )
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise ReservationNotFound(reservation_id)

    if requester_role != UserRole.ADMIN and reservation.user_id != requester_id:
        raise NotAuthorized("You are not allowed to cancel this reservation")

    if reservation.status == ReservationStatus.CANCELED:
        raise AlreadyCanceled()

    reservation.status = ReservationStatus.CANCELED
    await db.flush()
    await ledger.increment(db, reservation.event_id)
    return reservation


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

async def reserve_spot(
    principal: Principal,
    event_id: uuid.UUID,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    now_provider: NowProvider = utcnow,
) -> Reservation:
    """Reserve one spot on an event for the calling user."""
    require_role(principal, UserRole.USER)

    start_time = time.perf_counter()
    try:
        reservation = await run_in_transaction(
            lambda db: reserve(db, event_id, principal.user_id, now_provider),
            session_factory=session_factory,
            operation="reserve",
        )
    except ReservationEngineError as e:
        record_reservation_attempt(e.code.value.lower())
        logger.info(
            "reservation_rejected",
            event_id=str(event_id),
            user_id=str(principal.user_id),
            reason=e.code.value,
        )
        raise
    finally:
        reservation_latency.observe(time.perf_counter() - start_time)

    record_reservation_attempt("confirmed")
    logger.info(
        "reservation_created",
        reservation_id=str(reservation.id),
        event_id=str(event_id),
        user_id=str(principal.user_id),
    )
    await cache_service.invalidate_event(event_id)
    return reservation


async def cancel_reservation(
    principal: Principal,
    reservation_id: uuid.UUID,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> Reservation:
    """Cancel a reservation and hand its spot back to the event."""
    require_role(principal, UserRole.USER, UserRole.ADMIN)

    try:
        reservation = await run_in_transaction(
            lambda db: cancel(db, reservation_id, principal.user_id, principal.role),
            session_factory=session_factory,
            operation="cancel",
        )
    except ReservationEngineError as e:
        record_cancellation(e.code.value.lower())
        logger.info(
            "cancellation_rejected",
            reservation_id=str(reservation_id),
            requester_id=str(principal.user_id),
            reason=e.code.value,
        )
        raise

    record_cancellation("canceled")
    logger.info(
        "reservation_canceled",
        reservation_id=str(reservation.id),
        event_id=str(reservation.event_id),
        requester_id=str(principal.user_id),
        requester_role=principal.role.value,
    )
    await cache_service.invalidate_event(reservation.event_id)
    return reservation


async def list_for_user(
    principal: Principal,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> list[Reservation]:
    """All reservations of the caller, newest first, each with its event loaded."""

    async def _query(db: AsyncSession) -> list[Reservation]:
        result = await db.execute(
            select(Reservation)
            .options(selectinload(Reservation.event))
            .where(Reservation.user_id == principal.user_id)
            .order_by(Reservation.reservation_date.desc(), Reservation.id)
        )
        return list(result.scalars().all())

    return await run_in_transaction(
        _query, session_factory=session_factory, operation="list_for_user"
    )


async def list_for_event(
    principal: Principal,
    event_id: uuid.UUID,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> list[Reservation]:
    """All reservations of an event, oldest first, each with its user loaded. Admin only."""
    require_role(principal, UserRole.ADMIN)

    async def _query(db: AsyncSession) -> list[Reservation]:
        exists = await db.execute(select(Event.id).where(Event.id == event_id))
        if exists.first() is None:
            raise EventNotFound(event_id)

        result = await db.execute(
            select(Reservation)
            .options(selectinload(Reservation.user))
            .where(Reservation.event_id == event_id)
            .order_by(Reservation.reservation_date.asc(), Reservation.id)
        )
        return list(result.scalars().all())

    return await run_in_transaction(
        _query, session_factory=session_factory, operation="list_for_event"
    )
