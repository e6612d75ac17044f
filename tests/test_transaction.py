"""
Tests for the transactional coordinator.
"""

import sqlite3

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from reservation_engine.core.errors import CapacityExhausted, StoreUnavailable
from reservation_engine.models import Reservation, ReservationStatus
from reservation_engine.services import ledger
from reservation_engine.services.transaction import is_retryable, run_in_transaction


def locked_error() -> OperationalError:
    return OperationalError("BEGIN IMMEDIATE", {}, sqlite3.OperationalError("database is locked"))


class FakePgError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


@pytest.mark.asyncio
async def test_failure_rolls_back_every_step(session_factory, make_event, capacity_of, alice):
    """A rejection after the ledger decrement leaves no partial state."""
    event = await make_event(max_capacity=5)

    async def work(db):
        await ledger.try_decrement(db, event.id)
        db.add(
            Reservation(
                event_id=event.id,
                user_id=alice.user_id,
                status=ReservationStatus.CONFIRMED,
            )
        )
        await db.flush()
        raise CapacityExhausted()

    with pytest.raises(CapacityExhausted):
        await run_in_transaction(work, session_factory=session_factory)

    assert (await capacity_of(event.id)) == (5, 5, 0)
    async with session_factory() as session:
        rows = (await session.execute(select(Reservation))).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_commits_on_success(session_factory, make_event, capacity_of):
    event = await make_event(max_capacity=5)

    remaining = await run_in_transaction(
        lambda db: ledger.try_decrement(db, event.id), session_factory=session_factory
    )

    assert remaining == 4
    assert (await capacity_of(event.id))[1] == 4


@pytest.mark.asyncio
async def test_retries_contention_then_succeeds(session_factory, make_event, capacity_of):
    event = await make_event(max_capacity=5)
    calls = []

    async def work(db):
        calls.append(1)
        if len(calls) == 1:
            raise locked_error()
        return await ledger.try_decrement(db, event.id)

    remaining = await run_in_transaction(work, session_factory=session_factory)

    assert len(calls) == 2
    assert remaining == 4
    assert (await capacity_of(event.id))[1] == 4


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(session_factory):
    calls = []

    async def work(db):
        calls.append(1)
        raise locked_error()

    with pytest.raises(StoreUnavailable):
        await run_in_transaction(work, session_factory=session_factory)

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_non_retryable_store_error_is_unavailable(session_factory):
    calls = []

    async def work(db):
        calls.append(1)
        raise OperationalError("SELECT 1", {}, sqlite3.OperationalError("disk I/O error"))

    with pytest.raises(StoreUnavailable):
        await run_in_transaction(work, session_factory=session_factory)

    assert len(calls) == 1


def test_is_retryable_recognizes_postgres_contention():
    serialization = OperationalError("UPDATE", {}, FakePgError("40001"))
    deadlock = OperationalError("UPDATE", {}, FakePgError("40P01"))
    unique = OperationalError("INSERT", {}, FakePgError("23505"))

    assert is_retryable(serialization)
    assert is_retryable(deadlock)
    assert not is_retryable(unique)
    assert is_retryable(locked_error())
